"""
sshtalk: A streaming terminal chat client for OpenAI-compatible models.

This package follows Parnas's information hiding principles,
where each module hides a specific design decision.
"""

__version__ = "0.1.0"

from .config import ChatConfig, load_config
from .conversation import MessageStore, SessionController, StreamingResponseDriver, TranscriptFormatter
from .errors import (
    ChatError,
    ErrorKind,
    InvalidInputError,
    RequestTimeoutError,
    StreamCorruptionError,
    TransportFailureError,
)

__all__ = [
    "ChatConfig",
    "ChatError",
    "ErrorKind",
    "InvalidInputError",
    "MessageStore",
    "RequestTimeoutError",
    "SessionController",
    "StreamCorruptionError",
    "StreamingResponseDriver",
    "TranscriptFormatter",
    "TransportFailureError",
    "load_config",
]
