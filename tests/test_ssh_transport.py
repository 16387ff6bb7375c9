"""
Tests for sessions and forwarding over a real paramiko transport pair.

The server side is a paramiko ServerInterface on the other end of a socket
pair, so channel requests, EOF handling and exit statuses follow paramiko's
own channel rules.
"""

import io
import os
import socket
import threading
import time
from typing import Any, Callable, Generator, List, NamedTuple, Optional, Tuple

import paramiko
import pytest

from lattice_ssh.core.domain.models import DEFAULT_TERMINAL_MODES, encode_terminal_modes
from lattice_ssh.infrastructure.clients.ssh.client import SSHClient
from lattice_ssh.infrastructure.config.models import SSHSettings


def wait_for(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


class RecordingServer(paramiko.ServerInterface):
    """Accepts everything and records the requests it sees."""

    def __init__(self) -> None:
        self.started = threading.Event()
        self.command: Optional[bytes] = None
        self.pty: Optional[Tuple[bytes, int, int, bytes]] = None
        self.window_changes: List[Tuple[int, int]] = []
        self.global_requests: List[str] = []
        self.destination: Optional[Tuple[str, int]] = None

    def get_allowed_auths(self, username: str) -> str:
        return "password"

    def check_auth_password(self, username: str, password: str) -> int:
        if username == "diego:app/0" and password == "user:pass":
            return paramiko.AUTH_SUCCESSFUL
        return paramiko.AUTH_FAILED

    def check_channel_request(self, kind: str, chanid: int) -> int:
        if kind == "session":
            return paramiko.OPEN_SUCCEEDED
        return paramiko.OPEN_FAILED_ADMINISTRATIVELY_PROHIBITED

    def check_channel_direct_tcpip_request(self, chanid: int, origin: Tuple[str, int],
                                           destination: Tuple[str, int]) -> int:
        self.destination = destination
        return paramiko.OPEN_SUCCEEDED

    def check_channel_pty_request(self, channel: paramiko.Channel, term: bytes,
                                  width: int, height: int, pixelwidth: int,
                                  pixelheight: int, modes: bytes) -> bool:
        self.pty = (term, width, height, modes)
        return True

    def check_channel_shell_request(self, channel: paramiko.Channel) -> bool:
        self.started.set()
        return True

    def check_channel_exec_request(self, channel: paramiko.Channel, command: bytes) -> bool:
        self.command = command
        self.started.set()
        return True

    def check_channel_window_change_request(self, channel: paramiko.Channel, width: int,
                                            height: int, pixelwidth: int,
                                            pixelheight: int) -> bool:
        self.window_changes.append((width, height))
        return True

    def check_global_request(self, kind: str, msg: Any) -> bool:
        self.global_requests.append(kind)
        return True


class TransportPair(NamedTuple):
    client: paramiko.Transport
    server: paramiko.Transport
    recorder: RecordingServer


@pytest.fixture(scope="module")
def host_key() -> paramiko.RSAKey:
    return paramiko.RSAKey.generate(2048)


@pytest.fixture
def transports(host_key: paramiko.RSAKey) -> Generator[TransportPair, None, None]:
    """An authenticated client transport connected to a recording server."""
    client_sock, server_sock = socket.socketpair()
    recorder = RecordingServer()
    server = paramiko.Transport(server_sock)
    server.add_server_key(host_key)
    server.start_server(event=threading.Event(), server=recorder)

    client = paramiko.Transport(client_sock)
    client.start_client(timeout=5.0)
    client.auth_password("diego:app/0", "user:pass")

    yield TransportPair(client, server, recorder)

    client.close()
    server.close()


def serve_session(pair: TransportPair, output: bytes, status: int) -> Tuple[threading.Thread, List[bytes]]:
    """Read stdin until EOF, then reply with output and an exit status."""
    received: List[bytes] = []

    def run() -> None:
        channel = pair.server.accept(5.0)
        assert channel is not None
        channel.settimeout(5.0)
        pair.recorder.started.wait(5.0)
        data = b""
        while True:
            chunk = channel.recv(1024)
            if not chunk:
                break
            data += chunk
        received.append(data)
        channel.sendall(output)
        channel.send_exit_status(status)
        channel.close()

    thread = threading.Thread(target=run, daemon=True)
    thread.start()
    return thread, received


def make_client(pair: TransportPair, stdin: Any, stdout: io.BytesIO,
                settings: Optional[SSHSettings] = None) -> SSHClient:
    return SSHClient(pair.client, stdin=stdin, stdout=stdout, stderr=io.BytesIO(),
                     settings=settings or SSHSettings())


class TestRun:
    """Test one-shot commands on a real channel."""

    @pytest.mark.parametrize("stdin_data", [b"", b"ls\n"])
    def test_run_returns_exit_status(self, transports: TransportPair, stdin_data: bytes) -> None:
        """Test run works whether local stdin is empty or carries input."""
        stdout = io.BytesIO()
        server_thread, received = serve_session(transports, b"file.txt\n", 3)
        session = make_client(transports, io.BytesIO(stdin_data), stdout).open(80, 24, False)

        try:
            assert session.run("ls") == 3
        finally:
            session.close()

        server_thread.join(5.0)
        assert transports.recorder.command == b"ls"
        assert received == [stdin_data]
        assert stdout.getvalue() == b"file.txt\n"
        assert transports.recorder.pty is None


class TestShell:
    """Test shells on a real channel."""

    @pytest.mark.parametrize("stdin_data", [b"", b"ls\n"])
    def test_shell_without_pty(self, transports: TransportPair, stdin_data: bytes) -> None:
        """Test a shell fed from a pipe starts, gets the input and EOF, and exits."""
        stdout = io.BytesIO()
        server_thread, received = serve_session(transports, b"bye\n", 0)
        session = make_client(transports, io.BytesIO(stdin_data), stdout).open(80, 24, False)

        try:
            session.shell()
            assert session.wait() == 0
        finally:
            session.close()

        server_thread.join(5.0)
        assert received == [stdin_data]
        assert stdout.getvalue() == b"bye\n"

    def test_shell_with_pty_and_resize(self, transports: TransportPair,
                                       monkeypatch: pytest.MonkeyPatch) -> None:
        """Test the PTY request carries term, size and modes, and resizes reach the server."""
        monkeypatch.delenv("TERM", raising=False)
        read_fd, write_fd = os.pipe()
        stdin = os.fdopen(read_fd, "rb")
        stdout = io.BytesIO()
        server_thread, received = serve_session(transports, b"$ ", 7)
        session = make_client(transports, stdin, stdout).open(200, 300, True)

        try:
            session.shell()
            session.resize(120, 40)
            assert wait_for(lambda: transports.recorder.window_changes == [(120, 40)])

            os.write(write_fd, b"exit\n")
            os.close(write_fd)
            assert session.wait() == 7
        finally:
            session.close()
            stdin.close()

        server_thread.join(5.0)
        assert transports.recorder.pty == (
            b"xterm", 200, 300, encode_terminal_modes(DEFAULT_TERMINAL_MODES))
        assert received == [b"exit\n"]
        assert stdout.getvalue() == b"$ "


class TestKeepAlive:
    """Test keepalive requests on a real transport."""

    def test_keepalive_reaches_server(self, transports: TransportPair) -> None:
        settings = SSHSettings(keepalive_interval=0.01)
        session = make_client(transports, io.BytesIO(), io.BytesIO(), settings).open(80, 24, False)

        stop = session.keep_alive()
        try:
            assert wait_for(lambda: len(transports.recorder.global_requests) >= 2)
        finally:
            stop.set()
            session.keepalive_thread.join(2.0)
            session.close()

        assert not session.keepalive_thread.is_alive()
        assert set(transports.recorder.global_requests) == {"keepalive@cloudfoundry.org"}


class TestForward:
    """Test forwarding through a real direct-tcpip channel."""

    def test_forward_round_trip(self, transports: TransportPair) -> None:
        """Test bytes cross the channel both ways and local EOF ends the flow."""
        def echo_upper() -> None:
            channel = transports.server.accept(5.0)
            assert channel is not None
            channel.settimeout(5.0)
            while True:
                data = channel.recv(1024)
                if not data:
                    break
                channel.sendall(data.upper())
            channel.close()

        server_thread = threading.Thread(target=echo_upper, daemon=True)
        server_thread.start()

        app_side, local_conn = socket.socketpair()
        app_side.settimeout(5.0)
        client = make_client(transports, io.BytesIO(), io.BytesIO())
        forward_thread = threading.Thread(
            target=client.forward, args=(local_conn, "db:5432"), daemon=True)
        forward_thread.start()

        try:
            app_side.sendall(b"ping")
            assert app_side.recv(1024) == b"PING"

            app_side.shutdown(socket.SHUT_WR)
            assert app_side.recv(1024) == b""

            forward_thread.join(5.0)
            server_thread.join(5.0)
            assert not forward_thread.is_alive()
        finally:
            app_side.close()
            local_conn.close()

        assert transports.recorder.destination == ("db", 5432)
