"""
Configuration management for lattice-ssh.

Configuration is read from a JSON or YAML file and LATTICE_SSH_* environment
variables.
"""

from .loader import ConfigLoader
from .models import ApplicationConfig, LoggingConfig, SSHSettings, TargetConfig

__all__ = [
    "ConfigLoader",
    "ApplicationConfig",
    "LoggingConfig",
    "SSHSettings",
    "TargetConfig",
]
