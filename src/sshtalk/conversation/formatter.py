"""Transcript formatter.

Hides how the message list becomes a block of terminal text:
- Bubble geometry (75% column, 1-column margin)
- Alignment and borders per sender
- Welcome screen centering
- Layout caching across spinner frames
"""

import io

from rich import box
from rich.align import Align
from rich.console import Console, RenderableType
from rich.constrain import Constrain
from rich.padding import Padding
from rich.panel import Panel
from rich.text import Text

from ..prompts import get_welcome_message
from .models import Message
from .store import MessageStore

THINKING_TEXT = "Thinking"

# Share of the viewport a message bubble may occupy
BUBBLE_WIDTH_RATIO = 0.75
MARGIN_WIDTH = 1

# Below this, rich cannot lay out a bordered bubble
MIN_LAYOUT_WIDTH = 8


class TranscriptFormatter:
    """Turns a MessageStore into the text block shown in the viewport.

    Finalized messages are laid out once per (width, content_version).
    Only a live trailing message, the one showing the busy indicator, is
    rendered again when the indicator frame changes.
    """

    def __init__(self, welcome_message: str | None = None, busy_label: str = THINKING_TEXT):
        self._welcome = welcome_message if welcome_message is not None else get_welcome_message()
        self._busy_label = busy_label
        self._console = Console(
            file=io.StringIO(),
            width=80,
            color_system=None,
            force_terminal=False,
            highlight=False,
            emoji=False,
            markup=False,
        )
        self._cache_key: tuple[int, ...] | None = None
        self._cached_lines: list[str] = []
        self.layout_passes = 0

    def invalidate(self) -> None:
        """Drop the cached layout."""
        self._cache_key = None
        self._cached_lines = []

    def format(self, store: MessageStore, width: int, height: int = 0, frame: str = "") -> str:
        """Produce the display block.

        Args:
            store: Conversation to render
            width: Viewport width in columns
            height: Viewport height in rows (used to center the welcome text)
            frame: Current busy-indicator frame

        Returns:
            Rendered text, one line per viewport row
        """
        transcript = store.transcript
        if not transcript:
            key = (width, store.content_version, height)
            if key != self._cache_key:
                self._cached_lines = self._layout_welcome(width, height)
                self._cache_key = key
                self.layout_passes += 1
            return "\n".join(self._cached_lines)

        live = self._is_live(store)
        settled = transcript[:-1] if live else transcript

        key = (width, store.content_version)
        if key != self._cache_key:
            lines: list[str] = []
            for message in settled:
                lines.extend(self._layout_message(message, message.content, width))
            self._cached_lines = lines
            self._cache_key = key
            self.layout_passes += 1

        if not live:
            return "\n".join(self._cached_lines)

        tail = transcript[-1]
        display = self._busy_label if tail.is_placeholder else tail.content
        if frame:
            display = f"{display} {frame}"
        tail_lines = self._layout_message(tail, display, width)
        return "\n".join(self._cached_lines + tail_lines)

    def _is_live(self, store: MessageStore) -> bool:
        """Whether the trailing message currently carries the busy indicator."""
        last = store.last_message
        if last is None or last.from_user:
            return False
        if last.is_placeholder and store.awaiting_response:
            return True
        return not store.last_response_complete

    def _layout_message(self, message: Message, display: str, width: int) -> list[str]:
        width = max(width, MIN_LAYOUT_WIDTH)
        msg_width = int(width * BUBBLE_WIDTH_RATIO)

        if message.from_user:
            bubble = Panel(
                Text(display, justify="right"),
                box=box.ROUNDED,
                padding=(0, 1),
                expand=False,
            )
            renderable: RenderableType = Padding(
                Align.right(Constrain(bubble, msg_width)),
                (0, MARGIN_WIDTH, 0, 0),
            )
        else:
            renderable = Constrain(
                Padding(Text(display), (0, 0, 0, MARGIN_WIDTH)),
                msg_width + MARGIN_WIDTH,
            )

        # Blank separator after every message
        return self._render(renderable, width) + [""]

    def _layout_welcome(self, width: int, height: int) -> list[str]:
        width = max(width, MIN_LAYOUT_WIDTH)
        body = Text(self._welcome, justify="center")
        lines = self._render(Align.center(body), width)
        pad_lines = max(0, (height - len(lines)) // 2)
        return [""] * pad_lines + lines

    def _render(self, renderable: RenderableType, width: int) -> list[str]:
        self._console.width = width
        with self._console.capture() as capture:
            self._console.print(renderable)
        return [line.rstrip() for line in capture.get().rstrip("\n").split("\n")]
