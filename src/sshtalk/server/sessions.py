"""Session host.

Allocates one SessionController per connected user and tears it down when
the user goes away. The transport that accepts connections (a PTY server,
the local terminal) only deals in session ids; conversations are never
shared between ids.
"""

import contextlib
import logging
from collections.abc import AsyncIterator, Callable
from typing import Any

from ..config import ChatConfig
from ..conversation import SessionController
from ..llm import LLMProvider

logger = logging.getLogger(__name__)


class SessionHost:
    """Registry of live sessions keyed by connection id."""

    def __init__(self, llm: LLMProvider, config: ChatConfig):
        self._llm = llm
        self._config = config
        self._sessions: dict[str, SessionController] = {}

    @property
    def active_sessions(self) -> list[str]:
        return list(self._sessions)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def get(self, session_id: str) -> SessionController | None:
        return self._sessions.get(session_id)

    def open_session(
        self,
        session_id: str,
        on_change: Callable[[], Any] | None = None,
    ) -> SessionController:
        """Allocate a fresh conversation for a new connection.

        Raises:
            KeyError: If the id is already connected
        """
        if session_id in self._sessions:
            raise KeyError(f"Session already open: {session_id}")

        controller = SessionController(self._llm, self._config, on_change=on_change)
        self._sessions[session_id] = controller
        logger.info("Session %s opened (%d active)", session_id, len(self._sessions))
        return controller

    async def close_session(self, session_id: str) -> bool:
        """Tear down a connection's conversation.

        Returns:
            False if no such session was open
        """
        controller = self._sessions.pop(session_id, None)
        if controller is None:
            return False
        await controller.close()
        logger.info("Session %s closed (%d active)", session_id, len(self._sessions))
        return True

    @contextlib.asynccontextmanager
    async def session(
        self,
        session_id: str,
        on_change: Callable[[], Any] | None = None,
    ) -> AsyncIterator[SessionController]:
        """Scope a session to a connection's lifetime."""
        controller = self.open_session(session_id, on_change=on_change)
        try:
            yield controller
        finally:
            await self.close_session(session_id)

    async def shutdown(self) -> None:
        """Close every open session."""
        for session_id in list(self._sessions):
            await self.close_session(session_id)
