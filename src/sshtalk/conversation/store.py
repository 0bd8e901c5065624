"""Message store for one conversation.

Keeps the displayed transcript and the model context side by side.
The transcript is append-only except for the trailing non-final message,
which is rewritten while a response streams in, and the placeholder,
which is removed once real content (or a failure) arrives.
"""

from collections.abc import Iterable

from ..errors import InvalidInputError
from ..llm.models import ChatMessage
from .models import Message

ROLE_SYSTEM = "system"
ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"


class MessageStore:
    """Ordered conversation history in display and model-context form.

    Invariant: at most one message is non-final, and it is the last one.
    Every mutating call bumps content_version so layout caches can tell
    when they are stale.
    """

    def __init__(self, system_prompt: str):
        self._system_prompt = system_prompt
        self._transcript: list[Message] = []
        self._model_context: list[ChatMessage] = [
            ChatMessage(role=ROLE_SYSTEM, content=system_prompt)
        ]
        self.awaiting_response = False
        self.last_response_complete = True
        self.content_version = 0

    @property
    def transcript(self) -> tuple[Message, ...]:
        """Displayed messages, oldest first."""
        return tuple(self._transcript)

    @property
    def model_context(self) -> list[ChatMessage]:
        """Snapshot of the context sent with the next completion request."""
        return list(self._model_context)

    @property
    def last_message(self) -> Message | None:
        return self._transcript[-1] if self._transcript else None

    @property
    def placeholder(self) -> Message | None:
        """The transient busy message, if one is showing."""
        last = self.last_message
        if last is not None and last.is_placeholder:
            return last
        return None

    def _pending(self) -> Message | None:
        last = self.last_message
        if last is not None and not last.is_final and not last.from_user:
            return last
        return None

    def _touch(self) -> None:
        self.content_version += 1

    def append_user(self, text: str) -> Message:
        """Append a final user message and its context entry.

        Raises:
            InvalidInputError: If text is empty or only whitespace, or a
                response is still streaming into the transcript
        """
        if not text or not text.strip():
            raise InvalidInputError("Cannot send an empty message")
        if self._pending() is not None:
            raise InvalidInputError("Cannot send while a response is streaming")

        message = Message(content=text, from_user=True)
        self._transcript.append(message)
        self._model_context.append(ChatMessage(role=ROLE_USER, content=text))
        self._touch()
        return message

    def append_placeholder(self, label: str) -> Message | None:
        """Append the busy message shown until the first chunk arrives.

        Only one non-final message may exist. Violating that is a bug in
        the caller: it fails loudly under assertions and is ignored when
        Python runs with -O.
        """
        pending = self._pending()
        assert pending is None, "a non-final message already exists"
        if pending is not None:
            return None

        message = Message(content=label, from_user=False, is_final=False, is_placeholder=True)
        self._transcript.append(message)
        self._touch()
        return message

    def mark_awaiting(self) -> None:
        """Record that a request for the next response is outstanding."""
        self.awaiting_response = True
        self._touch()

    def apply_chunk(self, text: str) -> Message:
        """Show the full-so-far response text.

        text is the accumulated content, not a delta: it replaces whatever
        the trailing non-final message holds.
        """
        message = self._pending()
        if message is None:
            message = Message(content=text, from_user=False, is_final=False)
            self._transcript.append(message)
        else:
            message.content = text
            message.is_placeholder = False

        self.last_response_complete = False
        self._touch()
        return message

    def finalize(self, text: str) -> bool:
        """Seal the response with its final text.

        Idempotent: once the response has been finalized, further calls do
        nothing, so the context never gains a duplicate assistant entry.

        Returns:
            True if the store changed
        """
        message = self._pending()
        if message is None and not self.awaiting_response:
            return False

        if message is None:
            message = Message(content=text, from_user=False)
            self._transcript.append(message)
        else:
            message.content = text
            message.is_final = True
            message.is_placeholder = False

        self._model_context.append(ChatMessage(role=ROLE_ASSISTANT, content=text))
        self.awaiting_response = False
        self.last_response_complete = True
        self._touch()
        return True

    def fail(self) -> None:
        """Stop waiting after a failed request.

        A placeholder is dropped. Partially streamed content stays visible
        and is sealed as final, but is kept out of the model context.
        """
        message = self._pending()
        if message is not None:
            if message.is_placeholder:
                self._transcript.pop()
            else:
                message.is_final = True

        self.awaiting_response = False
        self.last_response_complete = True
        self._touch()

    def clear(self) -> None:
        """Reset to an empty conversation seeded with the system instruction."""
        self._transcript = []
        self._model_context = [ChatMessage(role=ROLE_SYSTEM, content=self._system_prompt)]
        self.awaiting_response = False
        self.last_response_complete = True
        self._touch()

    def load_context(self, entries: Iterable[ChatMessage]) -> int:
        """Mirror caller-supplied history into both forms.

        Only user and assistant entries are taken; the system instruction
        stays the one this store was created with.

        Returns:
            Number of entries loaded
        """
        loaded = 0
        for entry in entries:
            if entry.role not in (ROLE_USER, ROLE_ASSISTANT):
                continue
            self._transcript.append(
                Message(content=entry.content, from_user=entry.role == ROLE_USER)
            )
            self._model_context.append(ChatMessage(role=entry.role, content=entry.content))
            loaded += 1

        if loaded:
            self._touch()
        return loaded
