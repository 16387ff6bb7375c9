"""
SSH session channel handling.

An SSHSession wraps one paramiko session channel bound either to a shell or
to a single command. Its state only moves forward:
CREATED -> RUNNING -> WAITING -> CLOSED.
"""

import logging
import threading
from typing import BinaryIO, Dict, List, Optional

import paramiko
from paramiko.common import cMSG_CHANNEL_REQUEST

from ....core.domain.models import DEFAULT_TERMINAL_MODES, SessionState, encode_terminal_modes
from ....core.exceptions import SessionError
from ....core.interfaces.ssh import ISessionFactory, ISSHClient, ISSHSession
from ...config.models import SSHSettings
from .stream import copy_and_close, copy_stream, start_pump, stream_reader, stream_writer

logger = logging.getLogger(__name__)

# Time allowed for output pumps to drain once the remote process has exited
PUMP_DRAIN_TIMEOUT = 5.0


def build_pty_request(remote_chanid: int, term: str, width: int, height: int,
                      modes: Dict[int, int] = DEFAULT_TERMINAL_MODES) -> paramiko.Message:
    """Build a pty-req channel request carrying terminal modes."""
    m = paramiko.Message()
    m.add_byte(cMSG_CHANNEL_REQUEST)
    m.add_int(remote_chanid)
    m.add_string("pty-req")
    m.add_boolean(True)
    m.add_string(term)
    m.add_int(width)
    m.add_int(height)
    m.add_int(0)
    m.add_int(0)
    m.add_string(encode_terminal_modes(modes))
    return m


def request_pty(channel: paramiko.Channel, term: str, width: int, height: int,
                modes: Dict[int, int] = DEFAULT_TERMINAL_MODES) -> None:
    """
    Request a PTY on a session channel.

    Channel.get_pty always sends an empty mode list, so the request is built
    here and sent the same way get_pty sends it.

    Raises:
        paramiko.SSHException: If the request is rejected or the channel closed
    """
    if channel.closed or not channel.active:
        raise paramiko.SSHException("Channel is not open")

    m = build_pty_request(channel.remote_chanid, term, width, height, modes)
    channel._event_pending()
    channel.get_transport()._send_user_message(m)
    channel._wait_for_event()


class SSHSession(ISSHSession):
    """A session channel with its stdin, stdout and stderr pumps."""

    def __init__(self, channel: paramiko.Channel, settings: Optional[SSHSettings] = None):
        self._channel = channel
        self._transport = channel.get_transport()
        self._settings = settings or SSHSettings()
        self._state = SessionState.CREATED
        self._stdin: Optional[BinaryIO] = None
        self._output_pumps: List[threading.Thread] = []
        self._input_pump: Optional[threading.Thread] = None
        self._keepalive_thread: Optional[threading.Thread] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def channel(self) -> paramiko.Channel:
        return self._channel

    @property
    def keepalive_thread(self) -> Optional[threading.Thread]:
        return self._keepalive_thread

    def attach(self, stdin: BinaryIO, stdout: BinaryIO, stderr: BinaryIO) -> None:
        """
        Start pumping channel output to stdout and stderr.

        Local stdin is only pumped once the shell or command has started:
        sending EOF on the channel before then makes paramiko refuse the
        shell and exec requests.
        """
        size = self._settings.read_buffer_size
        self._stdin = stdin
        self._output_pumps = [
            start_pump("ssh-stdout", copy_stream,
                       self._channel.recv, stream_writer(stdout), size),
            start_pump("ssh-stderr", copy_stream,
                       self._channel.recv_stderr, stream_writer(stderr), size),
        ]

    def shell(self) -> None:
        self._start("shell")
        try:
            self._channel.invoke_shell()
        except paramiko.SSHException as e:
            raise SessionError(f"failed to start shell: {e}") from e
        self._start_input_pump()

    def run(self, command: str) -> int:
        self._start("run")
        try:
            self._channel.exec_command(command)
        except paramiko.SSHException as e:
            raise SessionError(f"failed to run command: {e}") from e
        self._start_input_pump()
        return self.wait()

    def _start_input_pump(self) -> None:
        if self._stdin is None:
            return
        self._input_pump = start_pump(
            "ssh-stdin", copy_and_close,
            stream_reader(self._stdin), self._channel.sendall,
            self._channel.shutdown_write, self._settings.read_buffer_size)

    def _start(self, operation: str) -> None:
        if self._state is not SessionState.CREATED:
            raise SessionError(
                f"cannot {operation} a session in state {self._state.value}")
        self._state = SessionState.RUNNING

    def keep_alive(self) -> threading.Event:
        """
        Send a keepalive request every interval until the returned event is set.

        The request goes out as a global request on the transport rather
        than as a request on the session channel. paramiko closes a channel
        whose request is refused, so a channel request would end the session
        on servers that do not know it.
        """
        stop = threading.Event()
        self._keepalive_thread = threading.Thread(
            target=self._keep_alive_loop, args=(stop,),
            name="ssh-keepalive", daemon=True)
        self._keepalive_thread.start()
        return stop

    def _keep_alive_loop(self, stop: threading.Event) -> None:
        interval = self._settings.keepalive_interval
        request = self._settings.keepalive_request
        while not stop.wait(interval):
            try:
                self._transport.global_request(request, wait=True)
            except (paramiko.SSHException, EOFError, OSError) as e:
                logger.debug(f"Keepalive request failed: {e}")

    def resize(self, width: int, height: int) -> None:
        try:
            self._channel.resize_pty(
                width=width, height=height, width_pixels=0, height_pixels=0)
        except (paramiko.SSHException, OSError) as e:
            raise SessionError(f"failed to resize: {e}") from e

    def wait(self) -> int:
        """Block until the remote process exits and return its exit status."""
        if self._state is SessionState.CREATED:
            raise SessionError("session not started")
        if self._state is SessionState.RUNNING:
            self._state = SessionState.WAITING

        status = self._channel.recv_exit_status()
        for pump in self._output_pumps:
            pump.join(PUMP_DRAIN_TIMEOUT)
        return status

    def close(self) -> None:
        if self._state is SessionState.CLOSED:
            return
        self._state = SessionState.CLOSED
        self._channel.close()


class SSHAPISessionFactory(ISessionFactory):
    """Creates sessions by opening them on the client."""

    def new(self, client: ISSHClient, width: int, height: int, want_pty: bool) -> ISSHSession:
        return client.open(width, height, want_pty)
