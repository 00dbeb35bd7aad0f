"""
load the config from config.yaml and .env
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml


class Config:
    """Configuration loader that reads from config.yaml and environment variables."""

    def __init__(self, config_path: str = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to config.yaml file. If None, uses SERVERLOADER_CONFIG
                        or config.yaml in the current directory.
        """
        if config_path is None:
            config_path = os.getenv('SERVERLOADER_CONFIG', 'config.yaml')

        self.config_path = Path(config_path)
        self._config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file and override with environment variables."""
        try:
            with open(self.config_path, 'r') as f:
                config = yaml.safe_load(f) or {}
        except FileNotFoundError:
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}")

        if not isinstance(config, dict):
            raise ValueError(f"Configuration root must be a mapping: {self.config_path}")

        return self._apply_env_overrides(config)

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides to configuration."""
        env_mappings = {
            'SERVERLOADER_CONFIG_URL': ('online_config', 'url'),
            'SERVERLOADER_UPDATE_INTERVAL': ('online_config', 'update_interval'),
            'SERVERLOADER_TIMEOUT': ('online_config', 'timeout'),
            'LOG_LEVEL': ('logging', 'level'),
            'LOG_JSON': ('logging', 'json'),
        }

        for env_var, config_path in env_mappings.items():
            env_value = os.getenv(env_var)
            if env_value is not None:
                current = config
                for key in config_path[:-1]:
                    if not isinstance(current.get(key), dict):
                        current[key] = {}
                    current = current[key]

                current[config_path[-1]] = self._convert_env_value(env_value)

        return config

    def _convert_env_value(self, value: str):
        """Convert environment variable string to appropriate Python type."""
        if value.lower() in ('true', 'false'):
            return value.lower() == 'true'

        try:
            return int(value)
        except ValueError:
            pass

        try:
            return float(value)
        except ValueError:
            pass

        return value

    def get(self, *keys, default=None):
        """Get configuration value by nested keys.

        Args:
            *keys: Configuration keys (e.g., 'online_config', 'url')
            default: Default value if key not found
        """
        current = self._config
        for key in keys:
            if isinstance(current, dict) and key in current:
                current = current[key]
            else:
                return default
        return current

    @property
    def online_config(self) -> Dict[str, Any]:
        """Get online config (SIP008) loader configuration."""
        return self.get('online_config', default={})

    @property
    def servers(self) -> List[Dict[str, Any]]:
        """Statically configured servers."""
        return self.get('servers') or []

    @property
    def logging(self) -> Dict[str, Any]:
        """Get logging configuration."""
        return self.get('logging', default={})

    @property
    def config_url(self) -> Optional[str]:
        return self.online_config.get('url')
