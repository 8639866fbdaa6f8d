"""Configuration management for tdsql."""
from __future__ import annotations
from typing import Dict, Any, Optional
import os
import json
import logging

from tdsql.core.errors import ConfigError
from tdsql.utils.constants import (
    COMPLETION_TIMEOUT, DEFAULT_DATABASE, DEFAULT_OUTPUT_FORMAT, DEFAULT_PAGE_SIZE,
    HISTORY_DIR_NAME, HISTORY_LIMIT, TABLE_CACHE_TTL,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = os.path.join("~", HISTORY_DIR_NAME, "config.json")

# Default configuration
DEFAULT_CONFIG: Dict[str, Any] = {
    "db_path": ":memory:",
    "database": DEFAULT_DATABASE,
    "output_format": DEFAULT_OUTPUT_FORMAT,
    "page_size": DEFAULT_PAGE_SIZE,
    "limit": None,
    "history_file": None,
    "history_limit": HISTORY_LIMIT,
    "cache_ttl": TABLE_CACHE_TTL,
    "completion_timeout": COMPLETION_TIMEOUT,
}

# Environment variable -> (setting, type)
ENV_OVERRIDES = {
    "TDSQL_DB_PATH": ("db_path", str),
    "TDSQL_DATABASE": ("database", str),
    "TDSQL_FORMAT": ("output_format", str),
    "TDSQL_PAGE_SIZE": ("page_size", int),
    "TDSQL_LIMIT": ("limit", int),
    "TDSQL_HISTORY_FILE": ("history_file", str),
}

class Config:
    """Configuration manager: defaults, then the JSON file, then environment."""

    def __init__(self, config_file: Optional[str] = None, environ: Optional[Dict[str, str]] = None):
        self.settings: Dict[str, Any] = DEFAULT_CONFIG.copy()
        self.config_file = os.path.expanduser(config_file or DEFAULT_CONFIG_FILE)
        self._load_config()
        self._load_env(os.environ if environ is None else environ)

    def _load_config(self) -> None:
        """Load configuration from file if exists."""
        try:
            if os.path.exists(self.config_file):
                with open(self.config_file, 'r') as f:
                    self.settings.update(json.load(f))
        except Exception as e:
            logger.warning(f"Failed to load config: {e}")

    def _load_env(self, environ: Dict[str, str]) -> None:
        for var, (key, kind) in ENV_OVERRIDES.items():
            raw = environ.get(var)
            if not raw:
                continue
            try:
                self.settings[key] = kind(raw)
            except ValueError:
                logger.warning(f"Ignoring {var}={raw!r}: expected {kind.__name__}")

    def save(self) -> None:
        """Save current configuration to file."""
        try:
            directory = os.path.dirname(self.config_file)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(self.config_file, 'w') as f:
                json.dump(self.settings, f, indent=2)
        except Exception as e:
            logger.warning(f"Failed to save config: {e}")

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value."""
        return self.settings.get(key, default)

    def get_int(self, key: str, default: Optional[int] = None) -> Optional[int]:
        """Integer setting (None stays None); raises ConfigError for other types."""
        value = self.settings.get(key, default)
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigError(f"Configuration value '{key}' must be a number, got {value!r}")
        return int(value)

    def set(self, key: str, value: Any) -> None:
        """Set configuration value."""
        self.settings[key] = value

# Global config instance
config = Config()
