"""
Configuration module for Turnwise.

Uses pydantic-settings for environment variable and config file loading.
"""

from turnwise.config.settings import Settings, get_config_file

__all__ = ["Settings", "get_config_file"]
