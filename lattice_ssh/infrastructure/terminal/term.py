"""
POSIX terminal control.
"""

import fcntl
import logging
import os
import shutil
import struct
import termios
import tty
from typing import Any, List, Tuple

from ...core.exceptions import TerminalError
from ...core.interfaces.ssh import ITerm

logger = logging.getLogger(__name__)

DEFAULT_SIZE = (80, 24)


class PosixTerm(ITerm):
    """Terminal control through termios."""

    def set_raw_terminal(self, fd: int) -> List[Any]:
        try:
            state = termios.tcgetattr(fd)
            tty.setraw(fd)
        except (termios.error, OSError) as e:
            raise TerminalError(f"failed to set raw mode on fd {fd}: {e}") from e
        return state

    def restore_terminal(self, fd: int, state: List[Any]) -> None:
        try:
            termios.tcsetattr(fd, termios.TCSADRAIN, state)
        except (termios.error, OSError) as e:
            logger.warning(f"Failed to restore terminal on fd {fd}: {e}")

    def get_winsize(self, fd: int) -> Tuple[int, int]:
        """Get (width, height), falling back to the environment or 80x24."""
        try:
            packed = fcntl.ioctl(fd, termios.TIOCGWINSZ, struct.pack('HHHH', 0, 0, 0, 0))
            rows, cols, _, _ = struct.unpack('HHHH', packed)
            if cols and rows:
                return cols, rows
        except OSError:
            pass

        size = shutil.get_terminal_size(DEFAULT_SIZE)
        return size.columns, size.lines

    def is_tty(self, fd: int) -> bool:
        try:
            return os.isatty(fd)
        except OSError:
            return False
