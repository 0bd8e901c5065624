"""Data structures for the conversation engine.

Hides the representation of displayed messages and of the events a
streaming request produces.
"""

from dataclasses import dataclass

from ..errors import ErrorKind


@dataclass
class Message:
    """A transcript entry as displayed to the user.

    content is mutable only while is_final is False.
    """

    content: str
    from_user: bool
    is_final: bool = True
    is_placeholder: bool = False


@dataclass(frozen=True)
class PartialEvent:
    """Content accumulated from the start of the response so far."""

    content: str


@dataclass(frozen=True)
class CompleteEvent:
    """The full response text; emitted exactly once per successful request."""

    content: str


@dataclass(frozen=True)
class FailedEvent:
    """Terminal failure of a request; nothing follows it."""

    kind: ErrorKind
    message: str = ""


StreamEvent = PartialEvent | CompleteEvent | FailedEvent
