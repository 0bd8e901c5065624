"""Tests for the SSH transport."""
import asyncio

import asyncssh
import pytest
from textual import events
from textual.geometry import Size

import sshtalk.server.ssh as ssh_module
from sshtalk.conversation import SessionController
from sshtalk.server.ssh import (
    ENTER_APPLICATION_MODE,
    LEAVE_APPLICATION_MODE,
    NO_PTY_MESSAGE,
    ChannelDriver,
    SSHChatServer,
    channel_driver,
    load_host_key,
)

from conftest import FakeLLMProvider, settle


class FakeChannel:
    def __init__(self):
        self.closing = False

    def is_closing(self) -> bool:
        return self.closing


class FakeStdin:
    """Reads come from a queue; exceptions put on it are raised."""

    def __init__(self):
        self.queue: asyncio.Queue = asyncio.Queue()

    async def read(self, n: int = -1):
        item = await self.queue.get()
        if isinstance(item, BaseException):
            raise item
        return item


class FakeStdout:
    def __init__(self):
        self.chunks: list[str] = []

    def write(self, data: str) -> None:
        self.chunks.append(data)

    @property
    def text(self) -> str:
        return "".join(self.chunks)


class FakeProcess:
    """Stands in for asyncssh.SSHServerProcess."""

    def __init__(self, term_type: str | None = "xterm-256color", size=(100, 30)):
        self._term_type = term_type
        self._size = size
        self.channel = FakeChannel()
        self.stdin = FakeStdin()
        self.stdout = FakeStdout()
        self.exit_status: int | None = None

    def get_terminal_type(self) -> str | None:
        return self._term_type

    def get_terminal_size(self) -> tuple[int, int, int, int]:
        width, height = self._size
        return width, height, 0, 0

    def get_extra_info(self, name: str, default=None):
        return {"peername": ("203.0.113.7", 50022)}.get(name, default)

    def exit(self, status: int) -> None:
        self.exit_status = status
        self.channel.closing = True


class RecordingApp:
    """Replaces ChatApp; runs until exit() is called."""

    instances: list["RecordingApp"] = []

    def __init__(self, controller, log_level=None, driver_class=None):
        self.controller = controller
        self.driver_class = driver_class
        self.size = None
        self.finished = asyncio.Event()
        RecordingApp.instances.append(self)

    async def run_async(self, size=None):
        self.size = size
        await self.finished.wait()

    def exit(self) -> None:
        self.finished.set()


class FakeTextualApp:
    """Just enough of a Textual app for a driver to post to."""

    def __init__(self):
        self.messages: list = []
        self.exited = False

    async def _post_message(self, message) -> bool:
        self.messages.append(message)
        return True

    def exit(self) -> None:
        self.exited = True


@pytest.fixture
def recording_app(monkeypatch):
    RecordingApp.instances = []
    monkeypatch.setattr(ssh_module, "ChatApp", RecordingApp)
    return RecordingApp


@pytest.fixture
async def server(config, tmp_path):
    server = SSHChatServer(
        FakeLLMProvider(), config, host="127.0.0.1", port=0, host_key_path=tmp_path / "id_ed25519"
    )
    yield server
    await server.stop(timeout=1)


class TestConnections:
    """Tests for one session per SSH channel."""

    @pytest.mark.asyncio
    async def test_channel_opens_and_closes_session(self, server, recording_app):
        """Test that a session lives exactly as long as its channel."""
        process = FakeProcess(size=(90, 20))
        handler = asyncio.create_task(server.handle_process(process))
        await settle()

        assert server.host.active_sessions == ["ssh-1"]
        app = recording_app.instances[0]
        assert isinstance(app.controller, SessionController)
        assert app.controller is server.host.get("ssh-1")
        assert issubclass(app.driver_class, ChannelDriver)
        assert app.driver_class.process is process
        assert app.size == (90, 20)

        app.exit()
        await handler

        assert len(server.host) == 0
        assert app.controller.closed
        assert process.exit_status == 0

    @pytest.mark.asyncio
    async def test_channels_get_separate_sessions(self, server, recording_app):
        """Test that two clients never share a conversation."""
        first = asyncio.create_task(server.handle_process(FakeProcess()))
        second = asyncio.create_task(server.handle_process(FakeProcess()))
        await settle()

        alice, bob = recording_app.instances
        assert alice.controller is not bob.controller
        assert sorted(server.host.active_sessions) == ["ssh-1", "ssh-2"]

        alice.exit()
        await first
        assert server.host.active_sessions == ["ssh-2"]

        bob.exit()
        await second
        assert len(server.host) == 0

    @pytest.mark.asyncio
    async def test_channel_without_pty_rejected(self, server, recording_app):
        """Test that a plain exec or shell request is turned away."""
        process = FakeProcess(term_type=None)

        await server.handle_process(process)

        assert NO_PTY_MESSAGE in process.stdout.text
        assert process.exit_status == 1
        assert recording_app.instances == []
        assert len(server.host) == 0

    @pytest.mark.asyncio
    async def test_stop_ends_open_sessions(self, server, recording_app):
        """Test that shutdown exits running apps and closes their sessions."""
        process = FakeProcess()
        handler = asyncio.create_task(server.handle_process(process))
        await settle()

        await server.stop(timeout=1)

        assert handler.done()
        assert recording_app.instances[0].finished.is_set()
        assert len(server.host) == 0
        assert process.exit_status == 0

    @pytest.mark.asyncio
    async def test_client_without_pty_over_network(self, server):
        """Test the rejection end to end with a real SSH client."""
        await server.start()

        async with asyncssh.connect(
            "127.0.0.1", server.port, known_hosts=None, username="guest"
        ) as conn:
            result = await conn.run(check=False)

        assert result.exit_status == 1
        assert NO_PTY_MESSAGE in result.stdout
        assert len(server.host) == 0


class TestHostKey:
    """Tests for host key handling."""

    def test_key_generated_once(self, tmp_path):
        """Test that a missing key is created and then reused."""
        path = tmp_path / ".ssh" / "id_ed25519"

        created = load_host_key(path)
        loaded = load_host_key(path)

        assert path.exists()
        assert created.get_algorithm() == "ssh-ed25519"
        assert loaded.export_public_key() == created.export_public_key()


class TestChannelDriver:
    """Tests for drawing the TUI on an SSH channel."""

    @pytest.mark.asyncio
    async def test_input_becomes_events(self):
        """Test keys, window changes and disconnect on the channel."""
        process = FakeProcess(size=(80, 24))
        app = FakeTextualApp()
        driver = channel_driver(process)(app)

        driver.start_application_mode()
        process.stdin.queue.put_nowait("a")
        process.stdin.queue.put_nowait(asyncssh.TerminalSizeChanged(120, 40, 0, 0))
        process.stdin.queue.put_nowait("")
        await settle()

        resizes = [m.size for m in app.messages if isinstance(m, events.Resize)]
        keys = [m.key for m in app.messages if isinstance(m, events.Key)]
        assert resizes == [Size(80, 24), Size(120, 40)]
        assert keys == ["a"]
        assert app.exited
        assert process.stdout.text.startswith(ENTER_APPLICATION_MODE)

        driver.stop_application_mode()
        assert process.stdout.text.endswith(LEAVE_APPLICATION_MODE)

    @pytest.mark.asyncio
    async def test_no_output_after_disconnect(self):
        """Test that a closing channel is not written to."""
        process = FakeProcess()
        driver = channel_driver(process)(FakeTextualApp())
        process.channel.closing = True

        driver.write("frame")

        assert process.stdout.chunks == []
