"""
Application layer: the SecureShell facade and process exit handling.
"""

from .exit_handler import ExitHandler
from .secure_shell import SecureShell

__all__ = ["ExitHandler", "SecureShell"]
