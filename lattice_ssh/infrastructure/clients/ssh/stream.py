"""
Byte pumps between local streams, sockets and SSH channels.

Every pump is a daemon thread doing a blocking copy. A pump ends when its
source reports EOF (an empty read) or raises.
"""

import logging
import socket
import threading
from typing import Any, BinaryIO, Callable, Optional

import paramiko

logger = logging.getLogger(__name__)

Reader = Callable[[int], bytes]
Writer = Callable[[bytes], Any]

DEFAULT_BUFFER_SIZE = 32768

# Errors that end a copy rather than propagate out of a pump thread
_COPY_ERRORS = (OSError, EOFError, ValueError, paramiko.SSHException)


def copy_stream(read: Reader, write: Writer, buffer_size: int = DEFAULT_BUFFER_SIZE) -> int:
    """
    Copy bytes from read to write until EOF or error.

    Returns:
        Number of bytes copied
    """
    copied = 0
    try:
        while True:
            data = read(buffer_size)
            if not data:
                break
            write(data)
            copied += len(data)
    except _COPY_ERRORS as e:
        logger.debug(f"Copy ended after {copied} bytes: {e}")
    return copied


def copy_and_close(read: Reader, write: Writer, close: Callable[[], Any],
                   buffer_size: int = DEFAULT_BUFFER_SIZE) -> int:
    """Copy until EOF or error, then close the destination."""
    try:
        return copy_stream(read, write, buffer_size)
    finally:
        try:
            close()
        except _COPY_ERRORS as e:
            logger.debug(f"Error closing copy destination: {e}")


def close_quietly(conn: Any) -> None:
    """Shut down and close a socket or channel, ignoring errors."""
    try:
        conn.shutdown(socket.SHUT_RDWR)
    except _COPY_ERRORS as e:
        logger.debug(f"Error shutting down connection: {e}")
    try:
        conn.close()
    except _COPY_ERRORS as e:
        logger.debug(f"Error closing connection: {e}")


def stream_reader(stream: BinaryIO) -> Reader:
    """Return a read function that returns as soon as any bytes are available."""
    read1: Optional[Reader] = getattr(stream, 'read1', None)
    return read1 if read1 is not None else stream.read


def stream_writer(stream: BinaryIO) -> Writer:
    """Return a write function that flushes after every chunk."""
    def write(data: bytes) -> None:
        stream.write(data)
        stream.flush()
    return write


def start_pump(name: str, target: Callable[..., Any], *args: Any) -> threading.Thread:
    """Run a pump in a daemon thread."""
    thread = threading.Thread(target=target, args=args, name=name, daemon=True)
    thread.start()
    return thread
