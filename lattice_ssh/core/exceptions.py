"""
Exception hierarchy for the secure shell client.

All errors raised by this package derive from SecureShellError so that the
CLI layer can report them uniformly.
"""

from typing import Optional


class SecureShellError(Exception):
    """Base exception for all secure shell errors"""
    pass


class ConnectError(SecureShellError):
    """Raised when the SSH proxy cannot be reached"""

    def __init__(self, message: str, address: Optional[str] = None):
        self.address = address
        super().__init__(message)


class AuthError(SecureShellError):
    """Raised when the SSH handshake or password authentication is rejected"""

    def __init__(self, message: str, address: Optional[str] = None, user: Optional[str] = None):
        self.address = address
        self.user = user
        super().__init__(message)


class SessionError(SecureShellError):
    """Raised when a session channel, pipe or PTY cannot be set up"""
    pass


class ForwardDialError(SecureShellError):
    """Raised when the remote end of a forwarded connection cannot be dialed"""

    def __init__(self, message: str, remote_address: Optional[str] = None):
        self.remote_address = remote_address
        super().__init__(message)


class TerminalError(SecureShellError):
    """Raised when the local terminal cannot be switched to raw mode"""
    pass


class ListenError(SecureShellError):
    """Raised when the local forwarding listener fails to bind or accept"""
    pass


class AlreadyConnectedError(SecureShellError):
    """Raised when connect is called on an already connected shell"""

    def __init__(self, message: str = "already connected"):
        super().__init__(message)


class NotConnectedError(SecureShellError):
    """Raised when a shell or forward is requested before connecting"""

    def __init__(self, message: str = "not connected"):
        super().__init__(message)


class ConfigError(SecureShellError):
    """Raised for unreadable or invalid configuration"""
    pass
