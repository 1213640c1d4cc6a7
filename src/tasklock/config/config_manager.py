"""
Configuration manager for tasklock.

This module provides a centralized way to load and cache settings for the
long-lived entry points (CLI, HTTP API). Library functions accept an explicit
``Settings`` instead of reaching for this global.
"""

from typing import Any, Optional

from .settings import Settings


class ConfigManager:
    """Manages configuration loading and access."""

    def __init__(self, overrides: Optional[dict[str, Any]] = None):
        """Initialize the configuration manager.

        Args:
            overrides: Field values that take precedence over the environment
        """
        self.overrides = dict(overrides or {})
        self._settings: Optional[Settings] = None

    def load_config(self) -> Settings:
        """Load configuration from the environment and ``.env``.

        Returns:
            Settings object with loaded configuration

        Raises:
            pydantic.ValidationError: If configuration validation fails
        """
        if self._settings is not None:
            return self._settings

        self._settings = Settings(**self.overrides)
        return self._settings

    def get_config(self) -> Settings:
        """Get the current configuration."""
        if self._settings is None:
            return self.load_config()
        return self._settings

    def reload_config(self) -> Settings:
        """Drop the cached settings and read them again."""
        self._settings = None
        return self.load_config()

    def get_logging_config(self) -> dict[str, Any]:
        """Get logging configuration."""
        settings = self.get_config()
        return {"level": settings.log_level, "state_dir": settings.state_dir}

    def validate_config(self) -> bool:
        """Validate the current configuration.

        Raises:
            ValueError: If configuration is invalid
        """
        try:
            self.load_config()
            return True
        except Exception as e:
            raise ValueError(f"Configuration validation failed: {e}") from e


# Global configuration manager instance
_config_manager: Optional[ConfigManager] = None


def get_config_manager() -> ConfigManager:
    """Get the global configuration manager instance."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


def get_config() -> Settings:
    """Get the cached configuration."""
    return get_config_manager().get_config()


def reload_config() -> Settings:
    """Reload configuration from the environment."""
    return get_config_manager().reload_config()
