"""Command-line interface for sshtalk."""

from .app import main

__all__ = ["main"]
