"""Streaming conversation engine.

Module structure (each module hides a design decision):
- models.py: Message and stream event representation
- store.py: Transcript and model context bookkeeping
- driver.py: Streaming request lifecycle and delta accumulation
- formatter.py: Width-aware layout and its cache
- controller.py: Session state machine
"""

from .controller import CLEAR_COMMAND, SessionController, SessionState
from .driver import StreamingResponseDriver
from .formatter import THINKING_TEXT, TranscriptFormatter
from .models import CompleteEvent, FailedEvent, Message, PartialEvent, StreamEvent
from .store import MessageStore

__all__ = [
    "CLEAR_COMMAND",
    "CompleteEvent",
    "FailedEvent",
    "Message",
    "MessageStore",
    "PartialEvent",
    "SessionController",
    "SessionState",
    "StreamEvent",
    "StreamingResponseDriver",
    "THINKING_TEXT",
    "TranscriptFormatter",
]
