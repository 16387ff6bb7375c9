"""
SecureShell facade.

Composes the dialer, session factory, terminal, listener, resize source and
exit handler into the two top-level operations: attaching the local
terminal to a remote shell, and forwarding local connections.
"""

import contextlib
import logging
import socket
import sys
import threading
from typing import Any, Callable, Optional

from ..core.domain.models import ForwardResult, TerminalSize
from ..core.exceptions import (
    AlreadyConnectedError, NotConnectedError, SecureShellError, SessionError, TerminalError
)
from ..core.interfaces.ssh import (
    IClientDialer, IExitHandler, IListener, IResizeEventSource, ISessionFactory,
    ISSHClient, ISSHSession, ITerm
)
from ..infrastructure.clients.ssh.dialer import AppDialer
from ..infrastructure.clients.ssh.session import SSHAPISessionFactory
from ..infrastructure.network.listener import ChannelListener
from ..infrastructure.terminal.signals import SignalResizeEventSource
from ..infrastructure.terminal.term import PosixTerm
from .exit_handler import ExitHandler

logger = logging.getLogger(__name__)

ResizeSourceFactory = Callable[[], IResizeEventSource]
ForwardResultCallback = Callable[[ForwardResult], None]

WATCHER_JOIN_TIMEOUT = 1.0


def run_once(func: Callable[[], Any]) -> Callable[[], None]:
    """Wrap func so that only the first call runs it."""
    lock = threading.Lock()
    done = False

    def wrapper() -> None:
        nonlocal done
        with lock:
            if done:
                return
            done = True
        func()

    return wrapper


class ResizeWatcher:
    """
    Forwards local window size changes to a session.

    The watcher keeps the last applied size and only sends a resize when a
    notification brings a different size.
    """

    def __init__(self, source: IResizeEventSource, term: ITerm, session: ISSHSession,
                 fd: int, initial: TerminalSize):
        self._source = source
        self._term = term
        self._session = session
        self._fd = fd
        self._initial = initial
        self._thread: Optional[threading.Thread] = None

    @property
    def thread(self) -> Optional[threading.Thread]:
        return self._thread

    def start(self) -> None:
        self._source.start()
        self._thread = threading.Thread(
            target=self._run, name="resize-watcher", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        previous = self._initial
        for _ in self._source.events():
            size = TerminalSize.from_tuple(self._term.get_winsize(self._fd))
            if size == previous:
                continue
            try:
                self._session.resize(size.width, size.height)
            except SessionError as e:
                logger.debug(f"Resize to {size.width}x{size.height} failed: {e}")
            previous = size

    def stop(self) -> None:
        self._source.stop()
        if self._thread is not None:
            self._thread.join(WATCHER_JOIN_TIMEOUT)


class SecureShell:
    """
    Interactive shell and port forwarding over one SSH connection.

    All collaborators are injected; defaults talk to the real terminal,
    network and SSH proxy.
    """

    def __init__(self,
                 listener: Optional[IListener] = None,
                 client_dialer: Optional[IClientDialer] = None,
                 term: Optional[ITerm] = None,
                 session_factory: Optional[ISessionFactory] = None,
                 resize_source_factory: ResizeSourceFactory = SignalResizeEventSource,
                 exit_handler: Optional[IExitHandler] = None,
                 stdin_fd: Optional[int] = None,
                 stdout_fd: Optional[int] = None):
        self._listener = listener or ChannelListener()
        self._client_dialer = client_dialer or AppDialer()
        self._term = term or PosixTerm()
        self._session_factory = session_factory or SSHAPISessionFactory()
        self._resize_source_factory = resize_source_factory
        self._exit_handler = exit_handler or ExitHandler()
        self._stdin_fd = stdin_fd if stdin_fd is not None else sys.stdin.fileno()
        self._stdout_fd = stdout_fd if stdout_fd is not None else sys.stdout.fileno()
        self._client: Optional[ISSHClient] = None

    @property
    def connected(self) -> bool:
        return self._client is not None

    def connect(self, app_name: str, instance_index: int, config: Any) -> None:
        """
        Dial an application instance.

        Raises:
            AlreadyConnectedError: If a connection is already open
        """
        if self._client is not None:
            raise AlreadyConnectedError()
        self._client = self._client_dialer.dial(app_name, instance_index, config)

    def shell(self, command: str = "") -> int:
        """
        Run an interactive shell, or a single command, and return its exit status.

        A PTY and raw mode are only used for an interactive shell on a
        terminal.
        """
        if self._client is None:
            raise NotConnectedError()

        want_pty = command == "" and self._term.is_tty(self._stdin_fd)
        width, height = self._term.get_winsize(self._stdout_fd)
        session = self._session_factory.new(self._client, width, height, want_pty)

        with contextlib.ExitStack() as cleanup:
            cleanup.callback(session.close)

            if want_pty:
                restore = self._enter_raw_mode()
                if restore is not None:
                    cleanup.callback(restore)

            watcher = ResizeWatcher(
                self._resize_source_factory(), self._term, session,
                self._stdout_fd, TerminalSize(width, height))
            watcher.start()
            cleanup.callback(watcher.stop)

            stop_keepalive = session.keep_alive()
            cleanup.callback(stop_keepalive.set)

            if command == "":
                session.shell()
                return session.wait()
            return session.run(command)

    def _enter_raw_mode(self) -> Optional[Callable[[], None]]:
        try:
            state = self._term.set_raw_terminal(self._stdin_fd)
        except TerminalError as e:
            logger.warning(f"Continuing without raw mode: {e}")
            return None

        restore = run_once(lambda: self._term.restore_terminal(self._stdin_fd, state))
        self._exit_handler.on_exit(restore)
        return restore

    def forward(self, local_address: str, remote_address: str,
                on_result: Optional[ForwardResultCallback] = None) -> None:
        """
        Forward every connection accepted on local_address to remote_address.

        Each connection runs in its own thread; a failed remote dial is
        reported through on_result and does not stop the loop. Returns when
        the listener is closed.

        Raises:
            ListenError: If listening or accepting fails
        """
        if self._client is None:
            raise NotConnectedError()

        client = self._client
        for conn in self._listener.listen("tcp", local_address):
            threading.Thread(
                target=self._forward_connection,
                args=(client, conn, remote_address, on_result),
                name="forward-connection",
                daemon=True,
            ).start()

    def _forward_connection(self, client: ISSHClient, conn: socket.socket,
                            remote_address: str,
                            on_result: Optional[ForwardResultCallback]) -> None:
        peer = _peer_name(conn)
        try:
            client.forward(conn, remote_address)
        except SecureShellError as e:
            logger.warning(f"Forwarding {peer} to {remote_address} failed: {e}")
            result = ForwardResult.failure(e, peer)
        else:
            logger.debug(f"Forwarding {peer} to {remote_address} finished")
            result = ForwardResult.success(peer)

        if on_result is not None:
            on_result(result)

    def connect_to_shell(self, app_name: str, instance_index: int, command: str, config: Any) -> int:
        """Connect and run a shell or command, closing the connection afterwards."""
        self.connect(app_name, instance_index, config)
        try:
            return self.shell(command)
        finally:
            self.close()

    def connect_and_forward(self, app_name: str, instance_index: int,
                            local_address: str, remote_address: str, config: Any,
                            on_result: Optional[ForwardResultCallback] = None) -> None:
        """Connect and forward until the listener closes, closing the connection afterwards."""
        self.connect(app_name, instance_index, config)
        try:
            self.forward(local_address, remote_address, on_result)
        finally:
            self.close()

    def close(self) -> None:
        """Stop listening and close the connection."""
        self._listener.close()
        client, self._client = self._client, None
        if client is not None:
            client.close()


def _peer_name(conn: Any) -> Optional[str]:
    try:
        peer = conn.getpeername()
    except (OSError, AttributeError):
        return None
    if isinstance(peer, tuple):
        return f"{peer[0]}:{peer[1]}"
    return str(peer) or None
