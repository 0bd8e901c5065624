"""Logging setup for server processes.

The TUI logs into its own panel; server modes log to stderr through Rich.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(level: str = "info", console: Console | None = None) -> None:
    """Route the standard logging module through a RichHandler.

    Args:
        level: Threshold name (debug, info, warning, error)
        console: Console to write to (defaults to stderr)
    """
    logging.basicConfig(
        level=level.upper(),
        format="%(name)s: %(message)s",
        datefmt="[%X]",
        handlers=[
            RichHandler(
                console=console or Console(stderr=True),
                rich_tracebacks=True,
                show_path=False,
            )
        ],
        force=True,
    )
