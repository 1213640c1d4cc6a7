"""
Configuration management for tasklock.

This module provides a centralized configuration system that:
- Reads ``SDD_`` prefixed environment variables and ``.env``
- Provides type-safe configuration access
- Validates configuration values
"""

from .config_manager import ConfigManager, get_config, reload_config
from .settings import STRICT_SCOPE_FORMAT, Settings

__all__ = ["ConfigManager", "get_config", "reload_config", "Settings", "STRICT_SCOPE_FORMAT"]
