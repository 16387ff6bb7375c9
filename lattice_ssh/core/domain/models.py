"""
Domain models for the secure shell client.

These are plain value objects shared between the interfaces and their
infrastructure implementations.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple

import paramiko


class SessionState(Enum):
    """Session lifecycle states. Transitions are strictly linear."""
    CREATED = "created"
    RUNNING = "running"
    WAITING = "waiting"
    CLOSED = "closed"


@dataclass(frozen=True)
class TerminalSize:
    """Local terminal window size in character cells."""
    width: int
    height: int

    @classmethod
    def from_tuple(cls, size: Tuple[int, int]) -> 'TerminalSize':
        """Create a size from a (width, height) tuple."""
        width, height = size
        return cls(width=width, height=height)


@dataclass(frozen=True)
class ForwardResult:
    """
    Outcome of one forwarded connection.

    A failed remote dial is reported here instead of aborting the accept loop,
    so unrelated forwarded connections keep running.
    """
    peer: Optional[str] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        """True when the flow ran to completion without a dial error."""
        return self.error is None

    @classmethod
    def success(cls, peer: Optional[str] = None) -> 'ForwardResult':
        return cls(peer=peer)

    @classmethod
    def failure(cls, error: BaseException, peer: Optional[str] = None) -> 'ForwardResult':
        return cls(peer=peer, error=error)


# RFC 4254 terminal mode opcodes.
ECHO = 53
TTY_OP_ISPEED = 128
TTY_OP_OSPEED = 129
TTY_OP_END = 0

DEFAULT_TERMINAL_MODES: Dict[int, int] = {
    ECHO: 1,
    TTY_OP_ISPEED: 115200,
    TTY_OP_OSPEED: 115200,
}


def encode_terminal_modes(modes: Dict[int, int]) -> bytes:
    """
    Encode terminal modes for a pty-req.

    Each mode is a one-byte opcode followed by a uint32 value; the list is
    terminated by TTY_OP_END.
    """
    message = paramiko.Message()
    for opcode, value in modes.items():
        message.add_byte(bytes([opcode]))
        message.add_int(value)
    message.add_byte(bytes([TTY_OP_END]))
    return message.asbytes()
