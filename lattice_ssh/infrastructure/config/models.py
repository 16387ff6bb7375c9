"""
Configuration models and data structures.

The dataclasses are what the rest of the package consumes. The pydantic
models validate raw file and environment input before it is turned into
dataclasses.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator


DEFAULT_SSH_PORT = 2222
DEFAULT_KEEPALIVE_REQUEST = "keepalive@cloudfoundry.org"
LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")


@dataclass
class TargetConfig:
    """Target cluster and the credentials used against its SSH proxy."""
    target: str = ""
    username: str = ""
    password: str = ""

    def __repr__(self) -> str:
        return f"TargetConfig(target={self.target!r}, username={self.username!r}, password='***')"


@dataclass
class SSHSettings:
    """SSH client settings."""
    port: int = DEFAULT_SSH_PORT
    keepalive_interval: float = 30.0
    keepalive_request: str = DEFAULT_KEEPALIVE_REQUEST
    connect_timeout: float = 10.0
    banner_timeout: float = 30.0
    auth_timeout: float = 30.0
    default_term: str = "xterm"
    read_buffer_size: int = 32768

    def __post_init__(self) -> None:
        if not (1 <= self.port <= 65535):
            raise ValueError(
                f"SSH port must be between 1 and 65535, got {self.port}")

        timeouts = [
            ("Keepalive interval", self.keepalive_interval),
            ("Connect timeout", self.connect_timeout),
            ("Banner timeout", self.banner_timeout),
            ("Auth timeout", self.auth_timeout),
        ]
        for name, value in timeouts:
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")

        if self.read_buffer_size <= 0:
            raise ValueError(
                f"Read buffer size must be positive, got {self.read_buffer_size}")


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "WARNING"
    log_directory: str = "logs"
    max_file_size: str = "10 MB"
    backup_count: int = 5
    console_enabled: bool = True
    file_enabled: bool = False

    def __post_init__(self) -> None:
        self.level = self.level.upper()
        if self.level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {self.level}")


@dataclass
class ApplicationConfig:
    """Main application configuration."""
    target: TargetConfig = field(default_factory=TargetConfig)
    ssh: SSHSettings = field(default_factory=SSHSettings)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    config_file_path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            'target': asdict(self.target),
            'ssh': asdict(self.ssh),
            'logging': asdict(self.logging),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ApplicationConfig':
        """Create configuration from dictionary."""
        return cls(
            target=TargetConfig(**data.get('target', {})),
            ssh=SSHSettings(**data.get('ssh', {})),
            logging=LoggingConfig(**data.get('logging', {})),
            config_file_path=data.get('config_file_path'),
        )


# Pydantic models for validating raw input
class TargetConfigModel(BaseModel):
    """Target configuration (Pydantic model)"""
    target: str = Field("", description="Cluster domain hosting the SSH proxy")
    username: str = Field("", description="Cluster username")
    password: str = Field("", description="Cluster password")

    def to_dataclass(self) -> TargetConfig:
        return TargetConfig(
            target=self.target,
            username=self.username,
            password=self.password,
        )


class SSHSettingsModel(BaseModel):
    """SSH settings (Pydantic model)"""
    port: int = Field(DEFAULT_SSH_PORT, ge=1, le=65535, description="SSH proxy port")
    keepalive_interval: float = Field(30.0, gt=0, description="Keepalive interval in seconds")
    keepalive_request: str = Field(DEFAULT_KEEPALIVE_REQUEST, description="Keepalive request name")
    connect_timeout: float = Field(10.0, gt=0, description="TCP connect timeout in seconds")
    banner_timeout: float = Field(30.0, gt=0, description="SSH banner timeout in seconds")
    auth_timeout: float = Field(30.0, gt=0, description="Authentication timeout in seconds")
    default_term: str = Field("xterm", description="Terminal type used when TERM is unset")
    read_buffer_size: int = Field(32768, gt=0, description="Read size for byte pumps")

    def to_dataclass(self) -> SSHSettings:
        return SSHSettings(**self.model_dump())


class LoggingConfigModel(BaseModel):
    """Logging configuration (Pydantic model)"""
    level: str = Field("WARNING", description="Minimum log level")
    log_directory: str = Field("logs", description="Directory for log files")
    max_file_size: str = Field("10 MB", description="Rotation size for the log file")
    backup_count: int = Field(5, ge=0, description="Number of rotated files to keep")
    console_enabled: bool = Field(True, description="Log to stderr")
    file_enabled: bool = Field(False, description="Log to a rotating file")

    @field_validator('level')
    @classmethod
    def _check_level(cls, value: str) -> str:
        value = value.upper()
        if value not in LOG_LEVELS:
            raise ValueError(f"unknown log level {value!r}")
        return value

    def to_dataclass(self) -> LoggingConfig:
        return LoggingConfig(**self.model_dump())


class ApplicationConfigModel(BaseModel):
    """Application configuration (Pydantic model)"""
    target: TargetConfigModel = Field(default_factory=TargetConfigModel)
    ssh: SSHSettingsModel = Field(default_factory=SSHSettingsModel)
    logging: LoggingConfigModel = Field(default_factory=LoggingConfigModel)

    def to_dataclass(self) -> ApplicationConfig:
        return ApplicationConfig(
            target=self.target.to_dataclass(),
            ssh=self.ssh.to_dataclass(),
            logging=self.logging.to_dataclass(),
        )
