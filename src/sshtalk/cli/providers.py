"""Provider factory functions for CLI.

Centralizes creation of the configuration and LLM client from environment
variables. Hides configuration details from command implementations.
"""

import typer
from pydantic import ValidationError
from rich.console import Console

from ..config import ChatConfig, load_config
from ..llm import LLMProvider, create_llm_provider

# Default console for output
_console = Console()


def get_config(console: Console | None = None) -> ChatConfig:
    """Read the process configuration from the environment.

    Raises:
        typer.Exit: If a variable holds an unusable value
    """
    con = console or _console
    try:
        return load_config()
    except (ValidationError, ValueError) as e:
        con.print(f"[red]Error: invalid configuration: {e}[/red]")
        raise typer.Exit(code=1)


def get_llm(config: ChatConfig, console: Console | None = None) -> LLMProvider:
    """Create the LLM provider described by the configuration.

    Args:
        config: Process configuration
        console: Optional Rich console for output

    Returns:
        LLM provider instance

    Raises:
        typer.Exit: If OPENAI_API_KEY is not set

    Environment variables:
        OPENAI_API_KEY: API key (required)
        OPENAI_BASE_URL: Selects an OpenAI-compatible backend when set
        OPENAI_MODEL: Model name (default: gpt-4o-mini)
    """
    con = console or _console
    if not config.api_key:
        con.print("[red]Error: OPENAI_API_KEY not set in environment[/red]")
        raise typer.Exit(code=1)

    if config.base_url:
        return create_llm_provider(
            "openai-compatible",
            api_key=config.api_key,
            base_url=config.base_url,
            model=config.model,
        )
    return create_llm_provider("openai", api_key=config.api_key, model=config.model)
