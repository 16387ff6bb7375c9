"""
Local TCP listener for port forwarding.
"""

import logging
import socket
import threading
from typing import Dict, Iterator, Optional, Tuple

from ...core.exceptions import ListenError
from ...core.interfaces.ssh import IListener

logger = logging.getLogger(__name__)

NETWORK_FAMILIES: Dict[str, int] = {
    "tcp": socket.AF_UNSPEC,
    "tcp4": socket.AF_INET,
    "tcp6": socket.AF_INET6,
}


def parse_listen_address(address: str) -> Tuple[Optional[str], int]:
    """
    Parse "host:port", "[v6]:port" or ":port".

    An empty host means all interfaces.
    """
    host, sep, port = address.rpartition(':')
    if not sep:
        raise ValueError(f"address {address}: missing port in address")
    if host.startswith('[') and host.endswith(']'):
        host = host[1:-1]
    try:
        port_number = int(port) if port else 0
    except ValueError:
        raise ValueError(f"address {address}: invalid port")
    return (host or None), port_number


class ChannelListener(IListener):
    """
    Accepts TCP connections and yields them one by one.

    Errors while binding or accepting are raised as ListenError from the
    iterator; closing the listener ends the iteration without an error.
    """

    def __init__(self, backlog: int = 128):
        self._backlog = backlog
        self._sock: Optional[socket.socket] = None
        self._closed = threading.Event()

    @property
    def bound_address(self) -> Optional[Tuple[str, int]]:
        """Address the listener is bound to, while listening."""
        if self._sock is None:
            return None
        try:
            return self._sock.getsockname()[:2]
        except OSError:
            return None

    def listen(self, network: str, address: str) -> Iterator[socket.socket]:
        sock = self._bind(network, address)
        self._sock = sock
        logger.debug(f"Listening on {network} {self.bound_address}")

        try:
            while not self._closed.is_set():
                try:
                    conn, peer = sock.accept()
                except OSError as e:
                    if self._closed.is_set():
                        return
                    raise ListenError(f"accept {network} {address}: {e}") from e
                logger.debug(f"Accepted connection from {peer}")
                yield conn
        finally:
            sock.close()

    def _bind(self, network: str, address: str) -> socket.socket:
        family = NETWORK_FAMILIES.get(network)
        if family is None:
            raise ListenError(f"listen {network}: unknown network {network}")

        try:
            host, port = parse_listen_address(address)
            infos = socket.getaddrinfo(
                host, port, family, socket.SOCK_STREAM, 0, socket.AI_PASSIVE)
            af, socktype, proto, _, sockaddr = infos[0]
            sock = socket.socket(af, socktype, proto)
        except (ValueError, OSError) as e:
            raise ListenError(f"listen {network} {address}: {e}") from e

        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind(sockaddr)
            sock.listen(self._backlog)
        except OSError as e:
            sock.close()
            raise ListenError(f"listen {network} {address}: {e}") from e
        return sock

    def close(self) -> None:
        self._closed.set()
        sock = self._sock
        if sock is None:
            return
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        sock.close()
