"""
SSH interfaces for the secure shell client.

This module defines the contracts composed by the SecureShell facade:
terminal control, local listening, dialing, the SSH client and its sessions,
resize notifications and process exit hooks.
"""

import socket
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Iterator, Tuple


class ITerm(ABC):
    """Interface for local terminal control."""

    @abstractmethod
    def set_raw_terminal(self, fd: int) -> Any:
        """Put the terminal into raw mode and return the previous state."""
        pass

    @abstractmethod
    def restore_terminal(self, fd: int, state: Any) -> None:
        """Restore a state returned by set_raw_terminal."""
        pass

    @abstractmethod
    def get_winsize(self, fd: int) -> Tuple[int, int]:
        """Get the (width, height) of the terminal."""
        pass

    @abstractmethod
    def is_tty(self, fd: int) -> bool:
        """Check whether the descriptor refers to a terminal."""
        pass


class IListener(ABC):
    """Interface for accepting local connections."""

    @abstractmethod
    def listen(self, network: str, address: str) -> Iterator[socket.socket]:
        """
        Listen on an address and yield accepted connections.

        Raises ListenError when listening or accepting fails. Iteration ends
        cleanly once close() is called.
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Stop listening."""
        pass


class ISSHSession(ABC):
    """Interface for a single SSH session channel."""

    @abstractmethod
    def shell(self) -> None:
        """Start an interactive shell."""
        pass

    @abstractmethod
    def run(self, command: str) -> int:
        """Run a command, wait for it and return its exit status."""
        pass

    @abstractmethod
    def keep_alive(self) -> threading.Event:
        """Start sending keepalive requests; set the returned event to stop."""
        pass

    @abstractmethod
    def resize(self, width: int, height: int) -> None:
        """Notify the remote side of a new window size."""
        pass

    @abstractmethod
    def wait(self) -> int:
        """Wait for the remote process to exit and return its status."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Close the session channel."""
        pass


class ISSHClient(ABC):
    """Interface for an authenticated SSH connection."""

    @abstractmethod
    def open(self, width: int, height: int, want_pty: bool) -> ISSHSession:
        """Open a session channel, optionally with a PTY."""
        pass

    @abstractmethod
    def forward(self, local_conn: socket.socket, remote_address: str) -> None:
        """Forward a local connection to a remote address until either side ends."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Close the connection."""
        pass


class IClientDialer(ABC):
    """Interface for dialing an application instance."""

    @abstractmethod
    def dial(self, app_name: str, instance_index: int, config: Any) -> ISSHClient:
        """Connect and authenticate to an application instance."""
        pass


class ISessionFactory(ABC):
    """Interface for creating sessions on a client."""

    @abstractmethod
    def new(self, client: ISSHClient, width: int, height: int, want_pty: bool) -> ISSHSession:
        """Create a new session."""
        pass


class IResizeEventSource(ABC):
    """Interface for terminal resize notifications."""

    @abstractmethod
    def start(self) -> None:
        """Begin receiving notifications."""
        pass

    @abstractmethod
    def events(self) -> Iterator[None]:
        """Yield once per notification until stopped."""
        pass

    @abstractmethod
    def stop(self) -> None:
        """Stop receiving notifications and end events()."""
        pass


class IExitHandler(ABC):
    """Interface for process exit hooks."""

    @abstractmethod
    def on_exit(self, callback: Callable[[], None]) -> None:
        """Register a function to run before the process exits."""
        pass

    @abstractmethod
    def exit(self, code: int) -> None:
        """Run registered functions and exit with the code."""
        pass


__all__ = [
    'ITerm',
    'IListener',
    'ISSHSession',
    'ISSHClient',
    'IClientDialer',
    'ISessionFactory',
    'IResizeEventSource',
    'IExitHandler',
]
