from collections.abc import AsyncIterator

from pydantic import BaseModel, ConfigDict, Field


class StreamingResponse:
    """Wrapper for a streaming LLM response.

    Acts as an async iterator of text deltas and owns the underlying
    generator, so a consumer that stops early can release the connection.

    Usage:
        stream = await provider.chat_completion_stream(messages)
        try:
            async for delta in stream:
                print(delta, end="")
        finally:
            await stream.aclose()
    """

    def __init__(self, async_iter: AsyncIterator[str]):
        """Initialize with an async iterator of text deltas.

        Args:
            async_iter: Async iterator yielding text deltas
        """
        self._iter = async_iter

    def __aiter__(self) -> "StreamingResponse":
        """Return self as async iterator."""
        return self

    async def __anext__(self) -> str:
        """Get next delta from the underlying iterator."""
        return await self._iter.__anext__()

    async def aclose(self) -> None:
        """Close the underlying iterator if it supports closing."""
        aclose = getattr(self._iter, "aclose", None)
        if aclose is not None:
            await aclose()


class ChatMessage(BaseModel):
    """A role-tagged entry of the model context."""

    model_config = ConfigDict(frozen=True)

    role: str = Field(description="Role of the message sender: 'user', 'assistant', or 'system'")
    content: str = Field(description="Content of the message")
