"""Main Textual TUI application.

The render surface for one session: shows the formatted transcript and
an input box, animates the busy indicator and forwards key events to the
session controller.
"""

import asyncio

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import VerticalScroll
from textual.driver import Driver
from textual.events import Resize
from textual.widgets import Input

from ..config import ChatConfig
from ..conversation import FailedEvent, SessionController
from ..llm import LLMProvider
from ..server.sessions import SessionHost
from .config import ERROR_NOTIFY_TIMEOUT, NOTIFY_TIMEOUT, SPINNER_FRAMES, SPINNER_INTERVAL, LogLevel
from .styles import APP_CSS
from .widgets import ChatInputBar, DebugPanel, HistoryInput, TranscriptView

LOCAL_SESSION_ID = "local"


class ChatApp(App):
    """Textual TUI for one chat session."""

    CSS = APP_CSS
    TITLE = "sshtalk"

    BINDINGS = [
        Binding("ctrl+c", "quit", "Quit"),
        Binding("escape", "quit", "Quit"),
        Binding("ctrl+k", "clear_chat", "Clear Chat", priority=True),
        Binding("ctrl+d", "toggle_debug", "Log", priority=True),
    ]

    def __init__(
        self,
        controller: SessionController,
        log_level: str | None = None,
        driver_class: type[Driver] | None = None,
    ) -> None:
        super().__init__(driver_class=driver_class)
        self._controller = controller
        self._log_level = log_level
        self._frame_index = 0
        self._reported_error: FailedEvent | None = None

    @property
    def controller(self) -> SessionController:
        return self._controller

    @property
    def frame(self) -> str:
        """Current busy-indicator frame."""
        return SPINNER_FRAMES[self._frame_index]

    def compose(self) -> ComposeResult:
        with VerticalScroll(id="viewport"):
            yield TranscriptView(id="transcript")
        yield DebugPanel(id="debug-panel")
        yield ChatInputBar(id="chat-input-bar")

    def on_mount(self) -> None:
        """Called when app is mounted."""
        log_panel = self.query_one("#debug-panel", DebugPanel)
        if self._log_level is not None:
            log_panel.log_level = LogLevel.from_string(self._log_level)
            log_panel.show()
            log_panel.write_entry(
                "TUI", f"Log panel enabled with level: {self._log_level.upper()}", LogLevel.INFO
            )

        self.sub_title = f"{self._controller.config.model} | /clear to reset"

        self._controller.set_change_callback(self._on_session_change)
        self._controller.set_debug_callback(self._route_debug)
        self.set_interval(SPINNER_INTERVAL, self._tick_spinner)

        self.query_one("#chat-input-bar", ChatInputBar).focus_input()
        self.call_after_refresh(self.refresh_transcript)

    def on_unmount(self) -> None:
        """Detach from the session; it may outlive the app."""
        self._controller.set_change_callback(None)
        self._controller.set_debug_callback(None)

    def on_resize(self, event: Resize) -> None:
        """Reflow once the new viewport size has been laid out."""
        self.call_after_refresh(self.refresh_transcript)

    def _route_debug(self, level: str, component: str, message: str) -> None:
        """Route debug messages to the log panel."""
        log_panel = self.query_one("#debug-panel", DebugPanel)
        log_panel.write_entry(component, message, LogLevel.from_string(level))

    def _on_session_change(self) -> None:
        error = self._controller.last_error
        if error is not None and error is not self._reported_error:
            self._reported_error = error
            self.notify(
                f"Error ({error.kind.value}): {error.message[:50]}",
                severity="error",
                timeout=ERROR_NOTIFY_TIMEOUT,
            )
        self.refresh_transcript()

    def _tick_spinner(self) -> None:
        if not self._controller.busy:
            return
        self._frame_index = (self._frame_index + 1) % len(SPINNER_FRAMES)
        self.refresh_transcript()

    def refresh_transcript(self) -> None:
        """Render the transcript for the viewport's current size."""
        viewport = self.query_one("#viewport", VerticalScroll)
        region = viewport.scrollable_content_region
        block = self._controller.render(region.width, region.height, self.frame)

        view = self.query_one("#transcript", TranscriptView)
        if view.show(block) and self._controller.store.transcript:
            self.call_after_refresh(viewport.scroll_end, animate=False)

    def on_input_submitted(self, event: Input.Submitted) -> None:
        """Handle user input submission."""
        event.stop()
        if not self._controller.handle_input(event.value):
            # Empty, or a reply is still streaming: keep what was typed
            return

        text_input = self.query_one("#chat-input", HistoryInput)
        text_input.add_to_history(event.value.strip())
        text_input.value = ""

    def action_clear_chat(self) -> None:
        """Clear the conversation."""
        self._controller.reset()
        self.notify("Chat cleared", timeout=NOTIFY_TIMEOUT)

    def action_toggle_debug(self) -> None:
        """Toggle the log panel visibility."""
        log_panel = self.query_one("#debug-panel", DebugPanel)
        is_visible = log_panel.toggle()
        self.notify(f"Log panel {'shown' if is_visible else 'hidden'}", timeout=NOTIFY_TIMEOUT)


async def run_chat_tui(
    llm: LLMProvider,
    config: ChatConfig,
    log_level: str | None = None,
) -> None:
    """Run the Textual TUI as the single local session.

    Args:
        llm: LLM provider instance
        config: Process-wide configuration
        log_level: Log level for panel (debug/info/warning/error), None to hide
    """
    host = SessionHost(llm, config)
    async with host.session(LOCAL_SESSION_ID) as controller:
        app = ChatApp(controller, log_level=log_level)
        try:
            await app.run_async()
        except (KeyboardInterrupt, asyncio.CancelledError):
            pass
