"""Hosting layers around the conversation engine.

- sessions.py: One conversation per connected user
- http.py: Stateless streaming endpoint (FastAPI)
- log.py: Logging setup for server processes
- ssh.py: SSH server, one TUI session per channel (import it directly)
"""

from .http import create_app
from .log import configure_logging
from .sessions import SessionHost

__all__ = ["SessionHost", "configure_logging", "create_app"]
