"""
Core interfaces defining the contracts composed by the SecureShell facade.
"""

from .ssh import (
    IClientDialer, IExitHandler, IListener, IResizeEventSource, ISessionFactory,
    ISSHClient, ISSHSession, ITerm
)

__all__ = [
    "IClientDialer",
    "IExitHandler",
    "IListener",
    "IResizeEventSource",
    "ISessionFactory",
    "ISSHClient",
    "ISSHSession",
    "ITerm",
]
