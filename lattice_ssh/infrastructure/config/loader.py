"""
Configuration loading utilities.

This module loads the target/credentials bundle and client settings from a
JSON or YAML file and from environment variables.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

import yaml
from pydantic import ValidationError

from ...core.exceptions import ConfigError
from .models import ApplicationConfig, ApplicationConfigModel

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("~/.lattice/config.json")
ENV_PREFIX = "LATTICE_SSH_"

# Keys of the flat layout written by the ltc CLI.
_FLAT_TARGET_KEYS = ("target", "username", "password")


class ConfigLoader:
    """Configuration loader supporting files and environment overrides."""

    def __init__(self, env_prefix: str = ENV_PREFIX,
                 default_path: Path = DEFAULT_CONFIG_PATH,
                 environ: Optional[Dict[str, str]] = None) -> None:
        self._env_prefix = env_prefix
        self._default_path = default_path
        self._environ = environ

    def load_config(self, config_file: Optional[str] = None) -> ApplicationConfig:
        """
        Load configuration from file and environment variables.

        Args:
            config_file: Path to configuration file. When omitted the default
                path is used, and a missing default file yields defaults.

        Returns:
            Loaded and validated configuration

        Raises:
            ConfigError: If the file is unreadable or a value is invalid
        """
        config_data: Dict[str, Any] = {}

        if config_file:
            path = Path(config_file).expanduser()
            if not path.exists():
                raise ConfigError(f"Configuration file not found: {config_file}")
            config_data = self._load_from_file(path)
        else:
            path = self._default_path.expanduser()
            if path.exists():
                config_data = self._load_from_file(path)
            else:
                logger.debug(f"No configuration file at {path}, using defaults")

        config_data = self._normalize_layout(config_data)
        config_data = self._merge_configs(config_data, self._load_from_environment())

        try:
            config = ApplicationConfigModel.model_validate(config_data).to_dataclass()
        except (ValidationError, ValueError) as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

        config.config_file_path = str(path) if path.exists() else None
        return config

    def _load_from_file(self, path: Path) -> Dict[str, Any]:
        """Load configuration from file."""
        suffix = path.suffix.lower()
        try:
            with open(path, 'r', encoding='utf-8') as f:
                if suffix in ('.yaml', '.yml'):
                    data = yaml.safe_load(f) or {}
                elif suffix == '.json':
                    data = json.load(f)
                else:
                    raise ConfigError(
                        f"Unsupported configuration file format: {path.suffix}")
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in {path}: {e}") from e
        except OSError as e:
            raise ConfigError(f"Error reading {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Configuration in {path} must be a mapping")
        return data

    def _normalize_layout(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Fold the flat ltc layout into the nested one."""
        if isinstance(data.get('target'), dict):
            return data

        result = {k: v for k, v in data.items() if k not in _FLAT_TARGET_KEYS}
        target = {k: data[k] for k in _FLAT_TARGET_KEYS if k in data}
        if target:
            result['target'] = target
        return result

    def _load_from_environment(self) -> Dict[str, Any]:
        """Load configuration overrides from environment variables."""
        environ = os.environ if self._environ is None else self._environ
        config: Dict[str, Any] = {}

        env_mappings: Dict[str, Tuple[str, Callable[[str], Any]]] = {
            f"{self._env_prefix}TARGET": ("target.target", str),
            f"{self._env_prefix}USERNAME": ("target.username", str),
            f"{self._env_prefix}PASSWORD": ("target.password", str),
            f"{self._env_prefix}PORT": ("ssh.port", int),
            f"{self._env_prefix}KEEPALIVE_INTERVAL": ("ssh.keepalive_interval", float),
            f"{self._env_prefix}LOG_LEVEL": ("logging.level", str),
        }

        for env_var, (config_path, converter) in env_mappings.items():
            value = environ.get(env_var)
            if value is None:
                continue
            try:
                self._set_nested_value(config, config_path, converter(value))
            except (ValueError, TypeError) as e:
                raise ConfigError(f"Invalid value for {env_var}: {e}") from e

        return config

    def _set_nested_value(self, config: Dict[str, Any], path: str, value: Any) -> None:
        """Set a nested configuration value using dot notation."""
        keys = path.split('.')
        current = config
        for key in keys[:-1]:
            current = current.setdefault(key, {})
        current[keys[-1]] = value

    def _merge_configs(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge two configuration dictionaries."""
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_configs(result[key], value)
            else:
                result[key] = value
        return result
