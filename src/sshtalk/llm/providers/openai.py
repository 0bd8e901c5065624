from collections.abc import AsyncIterator
from typing import Any

import openai
from openai import AsyncOpenAI

from ...errors import RequestTimeoutError, StreamCorruptionError, TransportFailureError
from ..base import LLMProvider
from ..models import ChatMessage, StreamingResponse


class OpenAIProvider(LLMProvider):
    """OpenAI (and OpenAI-compatible) LLM provider implementation.

    Hidden design decisions:
    - OpenAI API client initialization
    - Message format conversion
    - Mapping SDK exceptions onto sshtalk.errors kinds
    - Authentication mechanism
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: str | None = None,
        organization: str | None = None,
        **client_kwargs: Any
    ):
        """Initialize OpenAI provider.

        Args:
            api_key: OpenAI API key
            model: Default model to use
            base_url: Optional custom API base URL (any compatible backend)
            organization: Optional organization ID
            **client_kwargs: Additional kwargs for AsyncOpenAI client
        """
        self._model = model
        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            organization=organization,
            **client_kwargs
        )

    @property
    def model(self) -> str:
        """Get the default model name."""
        return self._model

    async def chat_completion_stream(
        self,
        messages: list[ChatMessage],
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int | None = None,
        **kwargs: Any
    ) -> StreamingResponse:
        """Generate a streaming chat completion using OpenAI.

        The request is sent lazily, on the first iteration of the
        returned stream.

        Args:
            messages: Conversation history
            model: Model to use (overrides default)
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate
            **kwargs: Additional OpenAI-specific parameters

        Returns:
            StreamingResponse that yields text deltas
        """
        model_to_use = model or self._model
        openai_messages = [{"role": msg.role, "content": msg.content} for msg in messages]
        return StreamingResponse(self._chat_stream_generator(
            model_to_use, openai_messages, temperature, max_tokens, **kwargs
        ))

    async def _chat_stream_generator(
        self,
        model: str,
        messages: list[dict[str, str]],
        temperature: float,
        max_tokens: int | None,
        **kwargs: Any,
    ) -> AsyncIterator[str]:
        """Internal generator for Chat Completions streaming with error mapping."""
        request_params: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "stream": True,
            **kwargs,
        }
        if max_tokens is not None:
            request_params["max_tokens"] = max_tokens

        try:
            stream = await self._client.chat.completions.create(**request_params)
            async for chunk in stream:
                if not chunk.choices:
                    continue
                content = chunk.choices[0].delta.content
                if content is None:
                    continue
                if not isinstance(content, str):
                    raise StreamCorruptionError(
                        f"Unexpected delta content type: {type(content).__name__}"
                    )
                if content:
                    yield content
        except openai.APIResponseValidationError as e:
            raise StreamCorruptionError(f"Malformed response from backend: {e}") from e
        except openai.APITimeoutError as e:
            raise RequestTimeoutError(f"Backend did not answer in time: {e}") from e
        except openai.APIConnectionError as e:
            raise TransportFailureError(f"Could not reach backend: {e}") from e
        except openai.APIStatusError as e:
            raise TransportFailureError(
                f"Backend returned HTTP {e.status_code}: {e.message}"
            ) from e
        except openai.APIError as e:
            # Error events sent inside an already open stream
            raise TransportFailureError(f"Backend reported an error: {e.message}") from e
        except ValueError as e:
            raise StreamCorruptionError(f"Malformed stream payload: {e}") from e

    async def list_models(self) -> list[str]:
        """List the model names the backend serves."""
        try:
            page = await self._client.models.list()
        except openai.APIStatusError as e:
            raise TransportFailureError(
                f"Backend returned HTTP {e.status_code}: {e.message}"
            ) from e
        except openai.APIError as e:
            raise TransportFailureError(f"Could not reach backend: {e}") from e
        return [m.id for m in page.data]

    async def close(self) -> None:
        """Close the OpenAI client.

        Note: Uses the OpenAI SDK's async context manager for proper cleanup.
        See: https://github.com/openai/openai-python#async-usage
        """
        await self._client.close()
