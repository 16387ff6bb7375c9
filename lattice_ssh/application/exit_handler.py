"""
Process exit hooks.

Cleanup functions registered here run before the process exits, whether it
exits normally through exit() or on SIGINT/SIGTERM.
"""

import logging
import os
import signal
import sys
import threading
from typing import Any, Callable, List, Optional

from ..core.interfaces.ssh import IExitHandler

logger = logging.getLogger(__name__)

EXIT_SIGINT = 130
EXIT_SIGTERM = 143


def terminate(code: int) -> None:
    """Flush standard streams and end the process immediately."""
    for stream in (sys.stdout, sys.stderr):
        try:
            stream.flush()
        except (OSError, ValueError) as e:
            logger.debug(f"Error flushing {stream}: {e}")
    os._exit(code)


class ExitHandler(IExitHandler):
    """Runs registered cleanup functions, then exits the process."""

    def __init__(self, system_exit: Callable[[int], Any] = sys.exit,
                 process_exit: Callable[[int], Any] = terminate):
        self._system_exit = system_exit
        self._process_exit = process_exit
        self._callbacks: List[Callable[[], None]] = []
        self._lock = threading.RLock()

    def on_exit(self, callback: Callable[[], None]) -> None:
        with self._lock:
            self._callbacks.append(callback)

    def exit(self, code: int) -> None:
        """
        Run cleanup functions and exit with code.

        SystemExit raised off the main thread only ends that thread, so a
        call from any other thread ends the process directly.
        """
        self.run_callbacks()
        if threading.current_thread() is threading.main_thread():
            self._system_exit(code)
        else:
            self._process_exit(code)

    def run_callbacks(self) -> None:
        """Run every registered function once, in registration order."""
        with self._lock:
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.warning(f"Exit callback failed: {e}")

    def install(self) -> None:
        """Route SIGINT and SIGTERM through exit()."""
        signal.signal(signal.SIGINT, self._handle_signal)
        signal.signal(signal.SIGTERM, self._handle_signal)

    def _handle_signal(self, signum: int, frame: Optional[Any]) -> None:
        code = EXIT_SIGINT if signum == signal.SIGINT else EXIT_SIGTERM
        logger.debug(f"Received signal {signum}, exiting with {code}")
        self.exit(code)
