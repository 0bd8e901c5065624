from typing import Any

from .base import LLMProvider
from .providers import OpenAIProvider


def create_llm_provider(provider: str, **config: Any) -> LLMProvider:
    """Create an LLM provider instance.

    This factory function hides the instantiation logic for different providers.

    Args:
        provider: Provider type ('openai', or 'openai-compatible' for any
            backend speaking the same API behind a custom base_url)
        **config: Provider-specific configuration
            - api_key: str (required)
            - model: str (default: 'gpt-4o-mini')
            - base_url: str | None
            - organization: str | None

    Returns:
        Initialized LLM provider instance

    Raises:
        ValueError: If provider type is not supported
        TypeError: If required configuration is missing

    Examples:
        >>> provider = create_llm_provider(
        ...     "openai",
        ...     api_key="sk-...",
        ...     model="gpt-4o-mini"
        ... )

        >>> provider = create_llm_provider(
        ...     "openai-compatible",
        ...     api_key="...",
        ...     base_url="http://localhost:11434/v1",
        ...     model="llama3"
        ... )
    """
    provider_lower = provider.lower()

    if provider_lower == "openai":
        if not config.get("api_key"):
            raise TypeError("OpenAI provider requires 'api_key' in config")
        return OpenAIProvider(**config)

    if provider_lower == "openai-compatible":
        if not config.get("api_key"):
            raise TypeError("OpenAI-compatible provider requires 'api_key' in config")
        if not config.get("base_url"):
            raise TypeError("OpenAI-compatible provider requires 'base_url' in config")
        return OpenAIProvider(**config)

    raise ValueError(
        f"Unsupported provider: {provider}. "
        f"Supported providers: 'openai', 'openai-compatible'"
    )
