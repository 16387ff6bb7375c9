"""
Core module containing domain models, exceptions and service interfaces.

Nothing here depends on the terminal, the network or paramiko transports.
"""

from .domain.models import ForwardResult, SessionState, TerminalSize
from .exceptions import SecureShellError

__all__ = [
    "ForwardResult",
    "SessionState",
    "TerminalSize",
    "SecureShellError",
]
