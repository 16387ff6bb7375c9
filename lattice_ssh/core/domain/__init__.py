from .models import (
    DEFAULT_TERMINAL_MODES, ForwardResult, SessionState, TerminalSize, encode_terminal_modes
)

__all__ = [
    "DEFAULT_TERMINAL_MODES",
    "ForwardResult",
    "SessionState",
    "TerminalSize",
    "encode_terminal_modes",
]
