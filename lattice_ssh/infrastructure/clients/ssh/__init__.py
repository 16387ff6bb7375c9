from .client import SSHClient, split_host_port
from .config import SSHClientConfig
from .dialer import AppDialer, dial_transport
from .session import SSHAPISessionFactory, SSHSession, build_pty_request, request_pty

__all__ = [
    'SSHClient',
    'SSHClientConfig',
    'AppDialer',
    'dial_transport',
    'SSHAPISessionFactory',
    'SSHSession',
    'build_pty_request',
    'request_pty',
    'split_host_port',
]
