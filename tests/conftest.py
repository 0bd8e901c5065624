"""Pytest configuration and shared fixtures."""
import asyncio
import os
from typing import Any

import pytest

from sshtalk.config import ChatConfig
from sshtalk.conversation import MessageStore, TranscriptFormatter
from sshtalk.llm import ChatMessage, LLMProvider, StreamingResponse

SYSTEM_PROMPT = "Do not use markdown except when user asks for it."
WELCOME = "Welcome to sshtalk!\nType a message and press Enter to send."

# Put on a feed to end the stream normally
END = object()


class FakeLLMProvider(LLMProvider):
    """In-memory provider.

    Scripted mode (deltas given): every request yields the deltas, then
    raises error if one is set.

    Fed mode (deltas=None): request N reads from feed(N). Strings are
    yielded, exceptions are raised and END finishes the stream.
    """

    def __init__(
        self,
        deltas: list[Any] | None = None,
        error: BaseException | None = None,
        open_error: BaseException | None = None,
        delay: float = 0.0,
        model: str = "fake-model",
    ):
        self._deltas = deltas
        self._error = error
        self._open_error = open_error
        self._delay = delay
        self._model = model
        self._feeds: list[asyncio.Queue] = []
        self.calls: list[list[ChatMessage]] = []
        self.models: list[str | None] = []
        self.closed_streams = 0
        self.closed = False

    @property
    def model(self) -> str:
        return self._model

    def feed(self, index: int) -> asyncio.Queue:
        while len(self._feeds) <= index:
            self._feeds.append(asyncio.Queue())
        return self._feeds[index]

    async def chat_completion_stream(
        self,
        messages: list[ChatMessage],
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int | None = None,
        **kwargs: Any
    ) -> StreamingResponse:
        index = len(self.calls)
        self.calls.append(list(messages))
        self.models.append(model)
        if self._open_error is not None:
            raise self._open_error
        if self._deltas is None:
            return StreamingResponse(self._fed(self.feed(index)))
        return StreamingResponse(self._scripted())

    async def _scripted(self):
        try:
            for delta in self._deltas:
                if self._delay:
                    await asyncio.sleep(self._delay)
                yield delta
            if self._error is not None:
                raise self._error
        finally:
            self.closed_streams += 1

    async def _fed(self, queue: asyncio.Queue):
        try:
            while True:
                item = await queue.get()
                if item is END:
                    return
                if isinstance(item, BaseException):
                    raise item
                yield item
        finally:
            self.closed_streams += 1

    async def list_models(self) -> list[str]:
        return [self._model]

    async def close(self) -> None:
        self.closed = True


async def settle(rounds: int = 20) -> None:
    """Let queued callbacks and tasks on the loop run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture(scope="session")
def api_keys():
    """Return API keys from environment."""
    return {
        "openai": os.getenv("OPENAI_API_KEY"),
    }


@pytest.fixture
def config():
    """Configuration with fixed prompt text."""
    return ChatConfig(
        api_key="sk-test",
        model="fake-model",
        system_prompt=SYSTEM_PROMPT,
        request_timeout=5.0,
        port=8080,
    )


@pytest.fixture
def store():
    """Empty message store."""
    return MessageStore(SYSTEM_PROMPT)


@pytest.fixture
def formatter():
    """Formatter with a fixed welcome text."""
    return TranscriptFormatter(welcome_message=WELCOME)


@pytest.fixture
def fed_llm():
    """Provider whose streams are driven step by step from the test."""
    return FakeLLMProvider()
