"""SSH transport.

Accepts SSH connections and runs one ChatApp per interactive channel.
Every channel gets its own session from the SessionHost; the session is
closed when the client disconnects. Channels that did not request a PTY
are turned away.

Not imported by the package __init__: it depends on the UI, which itself
depends on the session host.
"""

import asyncio
import itertools
import logging
import signal
from pathlib import Path
from typing import Any

import asyncssh
from textual import events
from textual._xterm_parser import XTermParser
from textual.driver import Driver
from textual.geometry import Size

from ..config import DEFAULT_SSH_PORT, ChatConfig
from ..llm import LLMProvider
from ..ui.app import ChatApp
from .sessions import SessionHost

logger = logging.getLogger(__name__)

DEFAULT_HOST_KEY_PATH = Path(".ssh") / "id_ed25519"

# Grace period for open sessions on shutdown, in seconds
SHUTDOWN_TIMEOUT = 30.0

NO_PTY_MESSAGE = "No PTY requested. Exiting."

# Delay before a lone ESC is reported as the escape key
ESCAPE_DELAY = 0.15

READ_SIZE = 4096

FALLBACK_SIZE = (80, 24)

ENTER_APPLICATION_MODE = (
    "\x1b[?1049h"  # Alt screen
    "\x1b[?25l"  # Hide cursor
    "\x1b[?2004h"  # Bracketed paste
)
LEAVE_APPLICATION_MODE = "\x1b[?2004l\x1b[?1049l\x1b[?25h"

ENABLE_MOUSE = "\x1b[?1000h\x1b[?1003h\x1b[?1015h\x1b[?1006h"
DISABLE_MOUSE = "\x1b[?1000l\x1b[?1003l\x1b[?1015l\x1b[?1006l"


class ChannelDriver(Driver):
    """Textual driver that draws on an SSH channel instead of the local terminal.

    Hidden design decisions:
    - Terminal mode escape sequences
    - Key parsing of channel input
    - Window-change handling

    The channel is bound per connection with channel_driver().
    """

    process: asyncssh.SSHServerProcess

    def __init__(
        self,
        app: Any,
        *,
        debug: bool = False,
        mouse: bool = True,
        size: tuple[int, int] | None = None,
    ) -> None:
        super().__init__(app, debug=debug, mouse=mouse, size=size)
        self._parser = XTermParser(debug)
        self._input_task: asyncio.Task | None = None
        self._flush_handle: asyncio.TimerHandle | None = None

    def write(self, data: str) -> None:
        """Send output to the client, unless the channel is already going away."""
        if not self.process.channel.is_closing():
            self.process.stdout.write(data)

    def start_application_mode(self) -> None:
        width, height = self._size or terminal_size(self.process)
        self._send_resize(width, height)

        self.write(ENTER_APPLICATION_MODE)
        if self._mouse:
            self.write(ENABLE_MOUSE)
        self._input_task = self._loop.create_task(self._read_input())

    def disable_input(self) -> None:
        if self._flush_handle is not None:
            self._flush_handle.cancel()
            self._flush_handle = None
        if self._input_task is not None:
            self._input_task.cancel()
            self._input_task = None

    def stop_application_mode(self) -> None:
        self.disable_input()
        if self._mouse:
            self.write(DISABLE_MOUSE)
        self.write(LEAVE_APPLICATION_MODE)

    def _send_resize(self, width: int, height: int) -> None:
        size = Size(width, height)
        self.send_message(events.Resize(size, size))

    async def _read_input(self) -> None:
        stdin = self.process.stdin
        while True:
            try:
                data = await stdin.read(READ_SIZE)
            except asyncssh.TerminalSizeChanged as exc:
                self._send_resize(exc.width, exc.height)
                continue
            except asyncssh.BreakReceived:
                continue
            except (asyncssh.Error, OSError) as exc:
                logger.info("Channel lost: %s", exc)
                break
            if not data:
                logger.debug("Input closed by client")
                break
            self._feed(data)

        self._app.exit()

    def _feed(self, data: str) -> None:
        for message in self._parser.feed(data):
            self.process_message(message)

        if self._flush_handle is not None:
            self._flush_handle.cancel()
        self._flush_handle = self._loop.call_later(ESCAPE_DELAY, self._flush_pending)

    def _flush_pending(self) -> None:
        self._flush_handle = None
        for message in self._parser.tick():
            self.process_message(message)


def terminal_size(process: asyncssh.SSHServerProcess) -> tuple[int, int]:
    """Size the client reported with its PTY request."""
    width, height, _, _ = process.get_terminal_size()
    if not width or not height:
        return FALLBACK_SIZE
    return width, height


def channel_driver(process: asyncssh.SSHServerProcess) -> type[ChannelDriver]:
    """Bind a driver class to one SSH channel."""
    return type("ChannelDriver", (ChannelDriver,), {"process": process})


def load_host_key(path: Path) -> asyncssh.SSHKey:
    """Read the server's host key, generating an Ed25519 key on first use."""
    if path.exists():
        return asyncssh.read_private_key(path)

    key = asyncssh.generate_private_key("ssh-ed25519")
    path.parent.mkdir(parents=True, exist_ok=True)
    key.write_private_key(path)
    path.chmod(0o600)
    logger.info("Generated host key %s", path)
    return key


class _OpenSSHServer(asyncssh.SSHServer):
    """Lets every client in without authentication."""

    def connection_made(self, conn: asyncssh.SSHServerConnection) -> None:
        logger.info("Connection from %s", conn.get_extra_info("peername"))

    def connection_lost(self, exc: Exception | None) -> None:
        if exc is not None:
            logger.warning("Connection lost: %s", exc)

    def begin_auth(self, username: str) -> bool:
        return False


class SSHChatServer:
    """SSH front end for the chat: one session per interactive channel.

    Usage:
        server = SSHChatServer(llm, config)
        await server.serve()  # until SIGINT/SIGTERM
    """

    def __init__(
        self,
        llm: LLMProvider,
        config: ChatConfig,
        host: str = "0.0.0.0",
        port: int = DEFAULT_SSH_PORT,
        host_key_path: Path = DEFAULT_HOST_KEY_PATH,
        log_level: str | None = None,
    ):
        self._bind_host = host
        self._port = port
        self._host_key_path = Path(host_key_path)
        self._log_level = log_level
        self._host = SessionHost(llm, config)
        self._ids = itertools.count(1)
        self._apps: dict[str, ChatApp] = {}
        self._handlers: set[asyncio.Task] = set()
        self._acceptor: asyncssh.SSHAcceptor | None = None

    @property
    def host(self) -> SessionHost:
        return self._host

    @property
    def port(self) -> int:
        """Listening port (the bound one once started)."""
        if self._acceptor is not None:
            return self._acceptor.get_port()
        return self._port

    async def start(self) -> None:
        """Start listening for connections."""
        key = load_host_key(self._host_key_path)
        self._acceptor = await asyncssh.listen(
            self._bind_host,
            self._port,
            server_factory=_OpenSSHServer,
            server_host_keys=[key],
            process_factory=self.handle_process,
            encoding="utf-8",
            line_editor=False,
        )
        logger.info("Starting SSH server on %s:%d", self._bind_host, self.port)

    async def handle_process(self, process: asyncssh.SSHServerProcess) -> None:
        """Serve one chat session for the lifetime of an SSH channel."""
        peer = process.get_extra_info("peername")
        if process.get_terminal_type() is None:
            logger.warning("Rejected %s: no PTY requested", peer)
            process.stdout.write(f"{NO_PTY_MESSAGE}\r\n")
            process.exit(1)
            return

        task = asyncio.current_task()
        if task is not None:
            self._handlers.add(task)

        session_id = f"ssh-{next(self._ids)}"
        logger.info("Session %s for %s (%s)", session_id, peer, process.get_terminal_type())
        try:
            async with self._host.session(session_id) as controller:
                driver_class = channel_driver(process)
                app = ChatApp(controller, log_level=self._log_level, driver_class=driver_class)
                self._apps[session_id] = app
                try:
                    await app.run_async(size=terminal_size(process))
                finally:
                    del self._apps[session_id]
        finally:
            if task is not None:
                self._handlers.discard(task)
        process.exit(0)

    async def stop(self, timeout: float = SHUTDOWN_TIMEOUT) -> None:
        """Stop accepting connections and end every open session.

        Args:
            timeout: Seconds to wait for running sessions to finish
        """
        logger.info("Stopping SSH server...")
        if self._acceptor is not None:
            self._acceptor.close()
            await self._acceptor.wait_closed()
            self._acceptor = None

        for app in list(self._apps.values()):
            app.exit()
        if self._handlers:
            _, pending = await asyncio.wait(set(self._handlers), timeout=timeout)
            for task in pending:
                logger.warning("Session did not end in time, cancelling")
                task.cancel()

        await self._host.shutdown()

    async def serve(self) -> None:
        """Run until SIGINT or SIGTERM, then shut down gracefully."""
        await self.start()

        loop = asyncio.get_running_loop()
        stop = asyncio.Event()
        signals = (signal.SIGINT, signal.SIGTERM)
        for sig in signals:
            try:
                loop.add_signal_handler(sig, stop.set)
            except NotImplementedError:
                pass  # Windows has no loop signal handlers

        try:
            await stop.wait()
        finally:
            for sig in signals:
                try:
                    loop.remove_signal_handler(sig)
                except NotImplementedError:
                    pass
            await self.stop()
