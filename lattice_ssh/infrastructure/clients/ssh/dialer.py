"""
Dialer for application instances behind the SSH proxy.

The proxy identifies the target instance from the SSH user name and checks
the cluster credentials passed as the password. Password authentication is
the only method, and host keys are accepted without verification.
"""

import logging
import socket
from typing import BinaryIO, Callable, Optional

import paramiko

from ....core.exceptions import AuthError, ConnectError
from ....core.interfaces.ssh import IClientDialer, ISSHClient
from ...config.models import SSHSettings, TargetConfig
from .client import SSHClient
from .config import SSHClientConfig

logger = logging.getLogger(__name__)

TransportFactory = Callable[[SSHClientConfig], paramiko.Transport]


def dial_transport(config: SSHClientConfig) -> paramiko.Transport:
    """
    Connect, handshake and authenticate a paramiko transport.

    Raises:
        OSError: If the TCP connection cannot be made
        paramiko.SSHException: If the handshake or authentication fails
    """
    sock = socket.create_connection(config.address, timeout=config.connect_timeout)
    transport = paramiko.Transport(sock)
    try:
        transport.banner_timeout = config.banner_timeout
        transport.auth_timeout = config.auth_timeout
        transport.start_client(timeout=config.banner_timeout)
        transport.auth_password(config.username, config.password)
    except BaseException:
        transport.close()
        raise
    return transport


class AppDialer(IClientDialer):
    """Dials an application instance and returns a connected SSH client."""

    def __init__(self, settings: Optional[SSHSettings] = None,
                 transport_factory: TransportFactory = dial_transport,
                 stdin: Optional[BinaryIO] = None,
                 stdout: Optional[BinaryIO] = None,
                 stderr: Optional[BinaryIO] = None):
        self._settings = settings or SSHSettings()
        self._transport_factory = transport_factory
        self._stdin = stdin
        self._stdout = stdout
        self._stderr = stderr

    def dial(self, app_name: str, instance_index: int, config: TargetConfig) -> ISSHClient:
        """
        Connect to an application instance.

        Raises:
            ConnectError: If the proxy cannot be reached
            AuthError: If the handshake or authentication is rejected
        """
        client_config = SSHClientConfig.for_instance(
            app_name, instance_index, config, self._settings)
        address = client_config.address_string

        logger.info(f"Dialing {client_config.username} at {address}")
        try:
            transport = self._transport_factory(client_config)
        except paramiko.AuthenticationException as e:
            raise AuthError(
                f"authentication failed for {client_config.username} at {address}: {e}",
                address=address, user=client_config.username) from e
        except paramiko.SSHException as e:
            raise AuthError(
                f"ssh handshake with {address} failed: {e}",
                address=address, user=client_config.username) from e
        except (OSError, EOFError) as e:
            raise ConnectError(
                f"failed to connect to {address}: {e}", address=address) from e

        logger.debug(f"Connected to {address}")
        return SSHClient(
            transport,
            stdin=self._stdin,
            stdout=self._stdout,
            stderr=self._stderr,
            settings=self._settings,
        )
