"""
Configuration management for GrowthCanvas.

This module handles loading and accessing configuration values from config.yaml.
Every setting has a built-in default so the editor core runs without a
configuration file (tests, embedded use).
"""

import yaml
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional


DEFAULT_SECTION_TITLES = [
    "FUNDAMENTOS Y RETENCIÓN",
    "ADQUISICIÓN",
    "ACTIVACIÓN",
    "REVENUE & MONETIZACIÓN",
    "REFERRAL & LOOPS",
]


class ConfigManager:
    """
    Manages configuration loading and access for GrowthCanvas.
    """

    def __init__(self, config_path: str = "config.yaml"):
        """
        Initialize the configuration manager.

        Args:
            config_path: Path to the configuration file
        """
        self.config_path = Path(config_path)
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from YAML file."""
        try:
            if not self.config_path.exists():
                raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

            with open(self.config_path, 'r', encoding='utf-8') as f:
                self._config = yaml.safe_load(f) or {}

            logging.info(f"Configuration loaded from {self.config_path}")

        except (OSError, yaml.YAMLError) as e:
            logging.warning(f"Failed to load configuration, using defaults: {e}")
            self._config = self._get_default_config()

    def _get_default_config(self) -> Dict[str, Any]:
        """Get default configuration values as fallback."""
        return {
            "api": {
                "base_url": "http://localhost:3000",
                "timeout": 15.0,
                "user_id": ""
            },
            "persistence": {
                "backend": "memory"
            },
            "database": {
                "filename": "growthcanvas.db"
            },
            "sync": {
                "debounce_seconds": 1.0
            },
            "drag": {
                "restore_on_cancel": False
            },
            "document": {
                "default_title": "Mi Estrategia de Crecimiento",
                "default_author": "",
                "default_sections": list(DEFAULT_SECTION_TITLES)
            },
            "paths": {
                "log_file": "growthcanvas.log"
            },
            "logging": {
                "level": "INFO",
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            }
        }

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get a configuration value using dot notation.

        Args:
            key_path: Dot-separated path to the configuration value (e.g., "sync.debounce_seconds")
            default: Default value if key is not found

        Returns:
            The configuration value

        Examples:
            config.get("api.base_url")  # Returns "http://localhost:3000"
            config.get("drag.restore_on_cancel")  # Returns False
        """
        keys = key_path.split('.')
        value = self._config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def get_section(self, section: str) -> Dict[str, Any]:
        """
        Get an entire configuration section.

        Args:
            section: Name of the configuration section

        Returns:
            Dictionary containing the section configuration
        """
        return self._config.get(section, {})

    def reload(self) -> None:
        """Reload configuration from file."""
        self._load_config()

    # Convenience properties for commonly used values

    @property
    def api_base_url(self) -> str:
        """Get the web API base URL."""
        return self.get("api.base_url", "http://localhost:3000")

    @property
    def api_timeout(self) -> float:
        """Get the HTTP timeout in seconds."""
        return float(self.get("api.timeout", 15.0))

    @property
    def api_user_id(self) -> Optional[str]:
        """Get the user id sent to the web API, if any."""
        return self.get("api.user_id") or None

    @property
    def persistence_backend(self) -> str:
        """Get the persistence backend name."""
        return self.get("persistence.backend", "memory")

    @property
    def database_filename(self) -> str:
        """Get database filename."""
        return self.get("database.filename", "growthcanvas.db")

    @property
    def debounce_seconds(self) -> float:
        """Get the autosave debounce delay."""
        return float(self.get("sync.debounce_seconds", 1.0))

    @property
    def restore_on_cancel(self) -> bool:
        """Whether a cancelled drag restores the pre-drag layout."""
        return bool(self.get("drag.restore_on_cancel", False))

    @property
    def default_title(self) -> str:
        return self.get("document.default_title", "Mi Estrategia de Crecimiento")

    @property
    def default_author(self) -> str:
        return self.get("document.default_author", "")

    @property
    def default_sections(self) -> List[str]:
        """Get the fallback section titles used when no canonical list is available."""
        return list(self.get("document.default_sections", DEFAULT_SECTION_TITLES))

    @property
    def log_filename(self) -> str:
        """Get log file name."""
        return self.get("paths.log_file", "growthcanvas.log")


# Global configuration instance
config = ConfigManager()


def get_config() -> ConfigManager:
    """
    Get the global configuration instance.

    Returns:
        The global ConfigManager instance
    """
    return config
