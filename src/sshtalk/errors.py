"""Error kinds raised and reported by the conversation engine.

Hides how failures from the model backend are classified. Provider SDK
exceptions never cross this boundary; they are translated into one of the
ChatError subclasses below.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Classification of a failed action or request."""

    INVALID_INPUT = "invalid_input"
    TRANSPORT_FAILURE = "transport_failure"
    STREAM_CORRUPTION = "stream_corruption"
    TIMEOUT = "timeout"


class ChatError(Exception):
    """Base class for all conversation engine errors."""

    kind: ErrorKind = ErrorKind.TRANSPORT_FAILURE


class InvalidInputError(ChatError, ValueError):
    """The user submitted something that cannot become a message."""

    kind = ErrorKind.INVALID_INPUT


class TransportFailureError(ChatError):
    """The backend could not be reached or failed while streaming."""

    kind = ErrorKind.TRANSPORT_FAILURE


class StreamCorruptionError(ChatError):
    """The backend sent an incremental payload that could not be understood."""

    kind = ErrorKind.STREAM_CORRUPTION


class RequestTimeoutError(ChatError, TimeoutError):
    """A request exceeded its fixed duration budget."""

    kind = ErrorKind.TIMEOUT
