"""Main CLI application using Typer."""
import asyncio
from pathlib import Path

import typer
from dotenv import load_dotenv
from rich.console import Console

from .providers import get_config, get_llm

# Load environment variables
load_dotenv()

# Create Typer app
app = typer.Typer(
    name="sshtalk",
    help="Chat with an OpenAI-compatible model in the terminal, over SSH or over HTTP",
    add_completion=True,
)

# Console for rich output
console = Console()

LOG_LEVELS = ("debug", "info", "warning", "error")


def _check_log_level(value: str | None) -> str | None:
    if value is not None and value.lower() not in LOG_LEVELS:
        raise typer.BadParameter(f"must be one of: {', '.join(LOG_LEVELS)}")
    return value.lower() if value else value


@app.callback(invoke_without_command=True)
def default(ctx: typer.Context):
    """Launch the chat TUI when no command is given."""
    if ctx.invoked_subcommand is None:
        tui_command(log_level=None)


@app.command(name="tui")
def tui_command(
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        "-l",
        callback=_check_log_level,
        help="Show log panel with level: debug (all), info, warning, or error"
    ),
):
    """Launch the interactive chat TUI."""
    config = get_config(console)
    llm = get_llm(config, console)

    async def _tui():
        from ..ui import run_chat_tui

        try:
            await run_chat_tui(llm=llm, config=config, log_level=log_level)
        finally:
            await llm.close()
            console.print("\n[dim]Goodbye![/dim]")

    try:
        asyncio.run(_tui())
    except KeyboardInterrupt:
        pass


@app.command(name="http")
def http_command(
    host: str = typer.Option(
        "0.0.0.0",
        "--host",
        help="Interface to bind"
    ),
    log_level: str = typer.Option(
        "info",
        "--log-level",
        "-l",
        callback=_check_log_level,
        help="Server log level: debug, info, warning, or error"
    ),
):
    """Serve the stateless chat endpoint on $PORT."""
    import uvicorn

    from ..server import configure_logging, create_app

    config = get_config(console)
    if config.port is None:
        console.print("[red]Error: PORT not set in environment[/red]")
        raise typer.Exit(code=1)

    llm = get_llm(config, console)
    configure_logging(log_level)

    console.print(f"[dim]Listening on {host}:{config.port} with model {config.model}[/dim]")
    uvicorn.run(
        create_app(llm, config),
        host=host,
        port=config.port,
        log_config=None,
        log_level=log_level,
    )


@app.command(name="ssh")
def ssh_command(
    host: str = typer.Option(
        "0.0.0.0",
        "--host",
        help="Interface to bind"
    ),
    host_key: Path = typer.Option(
        Path(".ssh") / "id_ed25519",
        "--host-key",
        help="Host key file (an Ed25519 key is generated if missing)"
    ),
    log_level: str = typer.Option(
        "info",
        "--log-level",
        "-l",
        callback=_check_log_level,
        help="Server log level: debug, info, warning, or error"
    ),
):
    """Serve the chat TUI to SSH clients on $SSH_PORT (default 2222)."""
    from ..server import configure_logging
    from ..server.ssh import SSHChatServer

    config = get_config(console)
    llm = get_llm(config, console)
    configure_logging(log_level)

    async def _serve():
        server = SSHChatServer(llm, config, host=host, port=config.ssh_port, host_key_path=host_key)
        try:
            await server.serve()
        finally:
            await llm.close()

    console.print(f"[dim]SSH on {host}:{config.ssh_port} with model {config.model}[/dim]")
    try:
        asyncio.run(_serve())
    except KeyboardInterrupt:
        pass


@app.command()
def health():
    """Check configuration and backend reachability."""
    config = get_config(console)

    if config.api_key:
        console.print("[green]+[/green] OpenAI API key: SET")
    else:
        console.print("[red]x[/red] OpenAI API key: NOT SET")
        raise typer.Exit(code=1)

    console.print(f"[green]+[/green] Model: {config.model}")
    console.print(f"[green]+[/green] Base URL: {config.base_url or 'default'}")
    if config.port is not None:
        console.print(f"[green]+[/green] Port: {config.port}")
    else:
        console.print("[yellow]![/yellow] PORT: NOT SET (http mode unavailable)")
    console.print(f"[green]+[/green] SSH port: {config.ssh_port}")

    async def _health():
        llm = get_llm(config, console)
        try:
            await llm.list_models()
            console.print("[green]+[/green] Backend connection: OK")
        except Exception as e:
            console.print(f"[red]x[/red] Backend connection: FAILED ({e})")
            raise typer.Exit(code=1)
        finally:
            await llm.close()

    asyncio.run(_health())


def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
