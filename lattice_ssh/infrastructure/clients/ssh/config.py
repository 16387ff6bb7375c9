from dataclasses import dataclass
from typing import Tuple

from ...config.models import SSHSettings, TargetConfig


@dataclass(frozen=True)
class SSHClientConfig:
    """Options for dialing one application instance through the SSH proxy"""
    host: str
    port: int
    username: str
    password: str
    connect_timeout: float = 10.0
    banner_timeout: float = 30.0
    auth_timeout: float = 30.0

    @property
    def address(self) -> Tuple[str, int]:
        return (self.host, self.port)

    @property
    def address_string(self) -> str:
        return f"{self.host}:{self.port}"

    def __repr__(self) -> str:
        return (f"SSHClientConfig(host={self.host!r}, port={self.port}, "
                f"username={self.username!r}, password='***')")

    @classmethod
    def for_instance(cls, app_name: str, instance_index: int,
                     target: TargetConfig, settings: SSHSettings) -> 'SSHClientConfig':
        """
        Build dial options for an application instance.

        The proxy routes on the user name "diego:<app>/<index>" and checks the
        password "<username>:<password>" against the cluster credentials.
        """
        return cls(
            host=target.target,
            port=settings.port,
            username=f"diego:{app_name}/{instance_index}",
            password=f"{target.username}:{target.password}",
            connect_timeout=settings.connect_timeout,
            banner_timeout=settings.banner_timeout,
            auth_timeout=settings.auth_timeout,
        )
