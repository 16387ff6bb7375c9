"""
lattice-ssh - Interactive shells and TCP port forwarding into application
instances running on a Lattice cluster.

All traffic runs over one SSH connection to the cluster's SSH proxy.
"""

__version__ = "0.1.0"

from .application.secure_shell import SecureShell
from .core.domain.models import ForwardResult, SessionState, TerminalSize
from .core.exceptions import (
    SecureShellError, ConnectError, AuthError, SessionError, ForwardDialError,
    TerminalError, ListenError, AlreadyConnectedError, NotConnectedError, ConfigError
)
from .infrastructure.config.models import ApplicationConfig, SSHSettings, TargetConfig

__all__ = [
    "SecureShell",
    "ForwardResult",
    "SessionState",
    "TerminalSize",
    "SecureShellError",
    "ConnectError",
    "AuthError",
    "SessionError",
    "ForwardDialError",
    "TerminalError",
    "ListenError",
    "AlreadyConnectedError",
    "NotConnectedError",
    "ConfigError",
    "ApplicationConfig",
    "SSHSettings",
    "TargetConfig",
]
