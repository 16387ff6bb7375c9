"""
Terminal resize notifications from SIGWINCH.
"""

import logging
import queue
import signal
import threading
from typing import Any, Iterator, Optional

from ...core.interfaces.ssh import IResizeEventSource

logger = logging.getLogger(__name__)

RESIZE_QUEUE_SIZE = 16

_STOP = object()


class SignalResizeEventSource(IResizeEventSource):
    """
    Delivers one event per SIGWINCH until stopped.

    Signals beyond the queue capacity are dropped; consumers re-read the
    window size, so a dropped notification loses nothing. Signal handlers
    can only be installed from the main thread; elsewhere the source logs a
    warning and yields nothing.
    """

    def __init__(self, maxsize: int = RESIZE_QUEUE_SIZE):
        self._queue: "queue.Queue[Any]" = queue.Queue(maxsize=maxsize)
        self._previous_handler: Any = None
        self._installed = False
        self._stopped = False

    @property
    def installed(self) -> bool:
        return self._installed

    def start(self) -> None:
        sigwinch: Optional[int] = getattr(signal, "SIGWINCH", None)
        if sigwinch is None:
            logger.warning("SIGWINCH is not available, terminal resizes will not be forwarded")
            self._stopped = True
            return
        if threading.current_thread() is not threading.main_thread():
            logger.warning("Resize events need the main thread, terminal resizes will not be forwarded")
            self._stopped = True
            return

        self._previous_handler = signal.signal(sigwinch, self._handle_signal)
        self._installed = True

    def _handle_signal(self, signum: int, frame: Any) -> None:
        try:
            self._queue.put_nowait(None)
        except queue.Full:
            pass

    def events(self) -> Iterator[None]:
        while not self._stopped:
            item = self._queue.get()
            if item is _STOP:
                return
            yield None

    def stop(self) -> None:
        if self.installed:
            previous = self._previous_handler
            signal.signal(signal.SIGWINCH, previous if previous is not None else signal.SIG_DFL)
            self._installed = False
        if self._stopped:
            return
        self._stopped = True
        # Make room for the sentinel if the queue is full
        while True:
            try:
                self._queue.put_nowait(_STOP)
                return
            except queue.Full:
                try:
                    self._queue.get_nowait()
                except queue.Empty:
                    pass
