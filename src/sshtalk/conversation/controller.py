"""Session controller.

The state machine owning one conversation: it interprets user input,
starts the streaming driver, applies the driver's events to the message
store and tells the render surface when to redraw.
"""

import asyncio
import itertools
from collections.abc import Callable
from enum import Enum
from typing import Any

from ..config import ChatConfig
from ..errors import ErrorKind, InvalidInputError
from ..llm import LLMProvider
from .driver import StreamingResponseDriver
from .formatter import THINKING_TEXT, TranscriptFormatter
from .models import CompleteEvent, FailedEvent, PartialEvent, StreamEvent
from .store import MessageStore

CLEAR_COMMAND = "/clear"


class SessionState(str, Enum):
    """Where the conversation is in its request/response cycle."""

    IDLE = "idle"
    AWAITING_FIRST_CHUNK = "awaiting_first_chunk"
    STREAMING = "streaming"
    ERROR = "error"


class SessionController:
    """Owns one MessageStore + TranscriptFormatter pair.

    Hidden design decisions:
    - Transition table between SessionState values
    - How driver events get back onto the session's loop
    - Which events are stale (orphaned by a reset or a teardown)

    All state changes happen on the event loop that calls submit(); the
    driver runs in its own task and hands every event back through the
    scheduler, which preserves emission order.
    """

    def __init__(
        self,
        llm: LLMProvider,
        config: ChatConfig,
        on_change: Callable[[], Any] | None = None,
        scheduler: Callable[..., Any] | None = None,
        formatter: TranscriptFormatter | None = None,
    ):
        """Initialize the controller.

        Args:
            llm: Model backend used for every request of this session
            config: Process-wide configuration
            on_change: Called after every applied mutation (redraw hook)
            scheduler: Callable(callback, *args) that runs callback on the
                session's loop; defaults to loop.call_soon
            formatter: Transcript formatter (one is created if omitted)
        """
        self._llm = llm
        self._config = config
        self._on_change = on_change
        self._scheduler = scheduler
        self.store = MessageStore(config.system_prompt)
        self.formatter = formatter or TranscriptFormatter()
        self.state = SessionState.IDLE
        self.last_error: FailedEvent | None = None
        self._request_ids = itertools.count(1)
        self._active_request: int | None = None
        self._driver: StreamingResponseDriver | None = None
        self._orphans: set[asyncio.Task] = set()
        self._closed = False
        self._debug_callback: Any | None = None

    @property
    def config(self) -> ChatConfig:
        return self._config

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def busy(self) -> bool:
        """Whether a busy indicator should be animating."""
        return self.state in (SessionState.AWAITING_FIRST_CHUNK, SessionState.STREAMING)

    @property
    def active_request(self) -> int | None:
        """Id of the request whose events are currently accepted."""
        return self._active_request

    def set_change_callback(self, callback: Callable[[], Any] | None) -> None:
        """Set the redraw hook called after every applied mutation."""
        self._on_change = callback

    def set_debug_callback(self, callback: Any) -> None:
        """Set the debug callback for detailed execution logging.

        Args:
            callback: Callable(level: str, component: str, message: str)
                      level: 'debug', 'info', 'warning', 'error'
        """
        self._debug_callback = callback
        if self._driver is not None:
            self._driver.set_debug_callback(callback)

    def _debug(self, level: str, message: str) -> None:
        if self._debug_callback:
            self._debug_callback(level, "Session", message)

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()

    def handle_input(self, text: str) -> bool:
        """Interpret one line typed by the user.

        Returns:
            True if the input was consumed and the input box should be cleared
        """
        value = text.strip()
        if value == CLEAR_COMMAND:
            self.reset()
            return True
        return self.submit(value)

    def submit(self, text: str) -> bool:
        """Send a user message and start streaming the reply.

        Ignored (returns False) when the session is closed, a response is
        still outstanding, or the text is empty.
        """
        if self._closed:
            return False
        if self.store.awaiting_response:
            self._debug("debug", "Submit ignored: response still outstanding")
            return False

        try:
            self.store.append_user(text)
        except InvalidInputError as e:
            self._debug("debug", f"Submit ignored: {e}")
            return False

        self.store.append_placeholder(THINKING_TEXT)
        self.store.mark_awaiting()
        self.last_error = None
        self.state = SessionState.AWAITING_FIRST_CHUNK
        self._start_request()
        self._changed()
        return True

    def _start_request(self) -> None:
        request_id = next(self._request_ids)
        schedule = self._scheduler or asyncio.get_running_loop().call_soon

        def deliver(event: StreamEvent) -> None:
            schedule(self.handle_event, request_id, event)

        driver = StreamingResponseDriver(
            self._llm,
            self.store.model_context,
            deliver=deliver,
            model=self._config.model,
        )
        driver.set_debug_callback(self._debug_callback)
        self._active_request = request_id
        self._driver = driver
        driver.start()
        self._debug("info", f"Request {request_id} started")

    def handle_event(self, request_id: int, event: StreamEvent) -> None:
        """Apply one driver event, dropping it if its request is stale."""
        if self._closed or request_id != self._active_request:
            self._debug("debug", f"Dropped {type(event).__name__} from request {request_id}")
            return

        if isinstance(event, PartialEvent):
            self.store.apply_chunk(event.content)
            self.state = SessionState.STREAMING
        elif isinstance(event, CompleteEvent):
            self.store.finalize(event.content)
            self.state = SessionState.IDLE
            self._finish_request()
            self._debug("info", f"Request {request_id} complete ({len(event.content)} chars)")
        elif isinstance(event, FailedEvent):
            self.store.fail()
            self.last_error = event
            self.state = SessionState.ERROR
            self._finish_request()
            self._debug("error", f"Request {request_id} failed ({event.kind.value}): {event.message}")
        else:
            raise TypeError(f"Unknown stream event: {event!r}")

        self._changed()

    def _finish_request(self) -> None:
        self._active_request = None
        self._driver = None

    def reset(self) -> None:
        """Return to an empty conversation from any state.

        An outstanding request is not cancelled; it runs to its end and
        its events are dropped.
        """
        if self._driver is not None and self._driver.task is not None:
            task = self._driver.task
            if not task.done():
                self._orphans.add(task)
                task.add_done_callback(self._orphans.discard)
        self._finish_request()
        self.store.clear()
        self.formatter.invalidate()
        self.last_error = None
        self.state = SessionState.IDLE
        self._debug("info", "Conversation cleared")
        self._changed()

    def render(self, width: int, height: int = 0, frame: str = "") -> str:
        """Format the transcript for a viewport of the given size."""
        return self.formatter.format(self.store, width, height, frame)

    async def wait_for_response(self) -> None:
        """Wait until the outstanding request's events have all been applied."""
        driver = self._driver
        if driver is None or driver.task is None:
            return
        await asyncio.gather(driver.task, return_exceptions=True)
        # Events were scheduled onto this loop before the task finished
        await asyncio.sleep(0)

    async def close(self) -> None:
        """Tear down the session and any request it still has running."""
        if self._closed:
            return
        self._closed = True

        tasks = set(self._orphans)
        if self._driver is not None:
            self._driver.close()
            if self._driver.task is not None:
                tasks.add(self._driver.task)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        self._finish_request()
        self._orphans.clear()
        self._debug("info", "Session closed")

    @property
    def error_kind(self) -> ErrorKind | None:
        """Kind of the last failure, if the session is in ERROR."""
        return self.last_error.kind if self.last_error is not None else None
