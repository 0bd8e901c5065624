"""Terminal UI module for sshtalk.

Provides a Textual-based render surface for one chat session.

Module structure (each module hides a design decision):
- config.py: UI constants (spinner, history size, log levels)
- widgets.py: Custom widgets (transcript view, input history, log rendering)
- styles.py: CSS styling (layout decisions)
- app.py: Application orchestration (user interaction flow)
"""

from .app import ChatApp, run_chat_tui
from .config import LogLevel
from .widgets import ChatInputBar, DebugPanel, HistoryInput, TranscriptView

__all__ = [
    "ChatApp",
    "ChatInputBar",
    "DebugPanel",
    "HistoryInput",
    "LogLevel",
    "TranscriptView",
    "run_chat_tui",
]
