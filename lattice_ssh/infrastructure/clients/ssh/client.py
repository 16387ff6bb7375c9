"""
SSH client over an authenticated paramiko transport.

The client opens session channels for shells and commands, and
direct-tcpip channels for forwarding local connections.
"""

import logging
import os
import socket
import sys
from typing import BinaryIO, Callable, Optional, Tuple

import paramiko

from ....core.domain.models import DEFAULT_TERMINAL_MODES
from ....core.exceptions import ForwardDialError, SessionError
from ....core.interfaces.ssh import ISSHClient, ISSHSession
from ...config.models import SSHSettings
from .session import SSHSession, request_pty
from .stream import close_quietly, copy_and_close, start_pump

logger = logging.getLogger(__name__)

SessionConstructor = Callable[[paramiko.Channel, SSHSettings], SSHSession]

_CHANNEL_ERRORS = (paramiko.SSHException, EOFError, OSError)
_DIAL_ERRORS = (ValueError,) + _CHANNEL_ERRORS


def split_host_port(address: str) -> Tuple[str, int]:
    """
    Split "host:port" or "[v6]:port" into its parts.

    Raises:
        ValueError: If the address has no valid port
    """
    host, sep, port = address.rpartition(':')
    if not sep or not port.isdigit():
        raise ValueError(f"address {address}: missing port in address")
    if host.startswith('[') and host.endswith(']'):
        host = host[1:-1]
    port_number = int(port)
    if not (0 <= port_number <= 65535):
        raise ValueError(f"address {address}: invalid port")
    return host, port_number


class SSHClient(ISSHClient):
    """
    SSH client bound to one authenticated connection.

    Sessions are wired to the local stdin, stdout and stderr given here.
    """

    def __init__(self, transport: paramiko.Transport,
                 stdin: Optional[BinaryIO] = None,
                 stdout: Optional[BinaryIO] = None,
                 stderr: Optional[BinaryIO] = None,
                 session_factory: SessionConstructor = SSHSession,
                 settings: Optional[SSHSettings] = None):
        self._transport = transport
        self._stdin = stdin if stdin is not None else sys.stdin.buffer
        self._stdout = stdout if stdout is not None else sys.stdout.buffer
        self._stderr = stderr if stderr is not None else sys.stderr.buffer
        self._session_factory = session_factory
        self._settings = settings or SSHSettings()

    @property
    def transport(self) -> paramiko.Transport:
        return self._transport

    def open(self, width: int, height: int, want_pty: bool) -> ISSHSession:
        """
        Open a session channel with its stdio pumps running.

        Raises:
            SessionError: If the channel, its pumps or the PTY cannot be set up
        """
        try:
            channel = self._transport.open_session()
        except _CHANNEL_ERRORS as e:
            raise SessionError(f"failed to open session: {e}") from e

        try:
            if want_pty:
                term = os.environ.get("TERM") or self._settings.default_term
                logger.debug(f"Requesting {term} PTY of {width}x{height}")
                request_pty(channel, term, width, height, DEFAULT_TERMINAL_MODES)

            session = self._session_factory(channel, self._settings)
            session.attach(self._stdin, self._stdout, self._stderr)
        except SessionError:
            channel.close()
            raise
        except _CHANNEL_ERRORS as e:
            channel.close()
            raise SessionError(f"failed to set up session: {e}") from e

        return session

    def forward(self, local_conn: socket.socket, remote_address: str) -> None:
        """
        Forward a local connection through a direct-tcpip channel.

        Blocks until both directions have finished.

        Raises:
            ForwardDialError: If the remote address cannot be dialed
        """
        try:
            host, port = split_host_port(remote_address)
            channel = self._transport.open_channel(
                "direct-tcpip", (host, port), self._origin(local_conn))
        except _DIAL_ERRORS as e:
            close_quietly(local_conn)
            raise ForwardDialError(
                f"failed to dial {remote_address}: {e}",
                remote_address=remote_address) from e

        size = self._settings.read_buffer_size
        pumps = [
            start_pump("forward-out", copy_and_close,
                       local_conn.recv, channel.sendall,
                       lambda: close_quietly(channel), size),
            start_pump("forward-in", copy_and_close,
                       channel.recv, local_conn.sendall,
                       lambda: close_quietly(local_conn), size),
        ]
        for pump in pumps:
            pump.join()

    def _origin(self, local_conn: socket.socket) -> Tuple[str, int]:
        try:
            host, port = local_conn.getpeername()[:2]
            return host, port
        except (OSError, ValueError, TypeError):
            return ("127.0.0.1", 0)

    def close(self) -> None:
        self._transport.close()
