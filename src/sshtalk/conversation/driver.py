"""Streaming response driver.

Wraps one in-flight completion request and surfaces its output as
partial/complete/failed events. The driver is the only place where
deltas are accumulated: every PartialEvent carries the total so far.
"""

import asyncio
from collections.abc import AsyncIterator, Callable
from typing import Any

from ..errors import ChatError, ErrorKind, StreamCorruptionError
from ..llm import LLMProvider
from ..llm.models import ChatMessage
from .models import CompleteEvent, FailedEvent, PartialEvent, StreamEvent


class StreamingResponseDriver:
    """One completion request, exposed as an ordered event stream.

    Hidden design decisions:
    - Delta accumulation
    - Total-duration timeout handling
    - Error classification into FailedEvent kinds
    - Delivery channel lifetime

    Two ways to consume it:
        # Pull
        async for event in driver.stream():
            ...

        # Push, from a task of its own
        driver = StreamingResponseDriver(llm, context, deliver=handler)
        driver.start()
    """

    def __init__(
        self,
        llm: LLMProvider,
        context: list[ChatMessage],
        deliver: Callable[[StreamEvent], Any] | None = None,
        model: str | None = None,
        timeout: float | None = None,
    ):
        """Initialize the driver.

        Args:
            llm: Provider that opens the streaming request
            context: Model context to send; copied, later changes are ignored
            deliver: Callback receiving each event in push mode
            model: Model override (None uses the provider's default)
            timeout: Total duration budget in seconds (None for unbounded)
        """
        self._llm = llm
        self._context = list(context)
        self._deliver = deliver
        self._model = model
        self._timeout = timeout
        self._accumulated = ""
        self._finished = False
        self._closed = False
        self._task: asyncio.Task | None = None
        self._debug_callback: Any | None = None

    @property
    def accumulated(self) -> str:
        """Text received so far."""
        return self._accumulated

    @property
    def finished(self) -> bool:
        """Whether the terminal event has been produced."""
        return self._finished

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def task(self) -> asyncio.Task | None:
        return self._task

    def set_debug_callback(self, callback: Any) -> None:
        """Set the debug callback for detailed execution logging.

        Args:
            callback: Callable(level: str, component: str, message: str)
        """
        self._debug_callback = callback

    def _debug(self, level: str, message: str) -> None:
        if self._debug_callback:
            self._debug_callback(level, "Driver", message)

    async def stream(self) -> AsyncIterator[StreamEvent]:
        """Run the request and yield its events in order.

        Yields any number of PartialEvent followed by exactly one
        CompleteEvent or FailedEvent.
        """
        if self._finished:
            raise RuntimeError("StreamingResponseDriver can only be consumed once")

        loop = asyncio.get_running_loop()
        deadline = None if self._timeout is None else loop.time() + self._timeout
        response = None
        units = 0
        self._debug("debug", f"Opening stream with {len(self._context)} context entries")

        try:
            response = await self._llm.chat_completion_stream(self._context, model=self._model)
            while True:
                next_unit = response.__anext__()
                if deadline is None:
                    delta = await next_unit
                else:
                    delta = await asyncio.wait_for(next_unit, max(deadline - loop.time(), 0))
                if not isinstance(delta, str):
                    raise StreamCorruptionError(
                        f"stream yielded {type(delta).__name__}, expected str"
                    )
                units += 1
                self._accumulated += delta
                yield PartialEvent(self._accumulated)
        except StopAsyncIteration:
            self._finished = True
            self._debug("info", f"Stream complete: {units} units, {len(self._accumulated)} chars")
            yield CompleteEvent(self._accumulated)
        except ChatError as e:
            # RequestTimeoutError is also a TimeoutError, so this comes first
            self._finished = True
            self._debug("error", f"Stream failed ({e.kind.value}): {e}")
            yield FailedEvent(e.kind, str(e))
        except asyncio.TimeoutError as e:
            self._finished = True
            if self._timeout is None:
                message = str(e) or "Backend timed out"
            else:
                message = f"No complete response within {self._timeout:g}s"
            self._debug("error", f"Stream timed out: {message}")
            yield FailedEvent(ErrorKind.TIMEOUT, message)
        except Exception as e:
            self._finished = True
            self._debug("error", f"Unexpected stream error: {e!r}")
            yield FailedEvent(ErrorKind.TRANSPORT_FAILURE, str(e) or type(e).__name__)
        finally:
            if response is not None:
                await response.aclose()

    async def run(self) -> StreamEvent:
        """Consume the stream, pushing each event to the deliver callback.

        Returns:
            The terminal event
        """
        terminal: StreamEvent | None = None
        async for event in self.stream():
            terminal = event
            if self._closed:
                continue
            if self._deliver is not None:
                self._deliver(event)
        assert terminal is not None
        return terminal

    def start(self) -> asyncio.Task:
        """Run the request as its own task on the running loop."""
        if self._task is not None:
            raise RuntimeError("StreamingResponseDriver already started")
        self._task = asyncio.create_task(self.run())
        return self._task

    def close(self) -> None:
        """Close the delivery channel and stop the request.

        Events produced after this call are dropped.
        """
        self._closed = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
