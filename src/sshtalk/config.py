"""Process-wide configuration.

Read once at startup and passed explicitly to the components that need it.
Nothing below the CLI reads the environment on its own.
"""

import os
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field

from .prompts import get_system_prompt

# Fixed upper bound on one stateless endpoint call
DEFAULT_REQUEST_TIMEOUT = 120.0

DEFAULT_MODEL = "gpt-4o-mini"

DEFAULT_SSH_PORT = 2222


class ChatConfig(BaseModel):
    """Immutable backend and server configuration."""

    model_config = ConfigDict(frozen=True)

    base_url: str | None = Field(default=None, description="OpenAI-compatible API base URL")
    api_key: str | None = Field(default=None, description="API key for the model backend")
    model: str = Field(default=DEFAULT_MODEL, description="Model used for completions")
    system_prompt: str = Field(
        default_factory=get_system_prompt,
        description="Instruction that seeds every model context"
    )
    request_timeout: float = Field(
        default=DEFAULT_REQUEST_TIMEOUT,
        gt=0,
        description="Total duration budget for one stateless request, in seconds"
    )
    port: int | None = Field(default=None, ge=1, le=65535, description="Server listen port")
    ssh_port: int = Field(
        default=DEFAULT_SSH_PORT, ge=1, le=65535, description="SSH server listen port"
    )


def load_config(env: Mapping[str, str] | None = None) -> ChatConfig:
    """Build the configuration from environment variables.

    Args:
        env: Mapping to read from (defaults to os.environ)

    Returns:
        Frozen ChatConfig

    Environment variables:
        OPENAI_BASE_URL: Backend base URL (default: SDK default)
        OPENAI_API_KEY: Backend API key
        OPENAI_MODEL: Model name (default: gpt-4o-mini)
        PORT: Listen port for the HTTP server
        SSH_PORT: Listen port for the SSH server (default: 2222)
    """
    source = os.environ if env is None else env

    values: dict[str, object] = {
        "base_url": source.get("OPENAI_BASE_URL") or None,
        "api_key": source.get("OPENAI_API_KEY") or None,
        "model": source.get("OPENAI_MODEL") or DEFAULT_MODEL,
    }
    port = source.get("PORT")
    if port:
        values["port"] = int(port)
    ssh_port = source.get("SSH_PORT")
    if ssh_port:
        values["ssh_port"] = int(ssh_port)

    return ChatConfig(**values)
