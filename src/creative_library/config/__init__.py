"""
Configuration management module for Creative Library.

This module handles the cascading configuration system:
Defaults -> General Config -> User Config -> Final Settings
"""

from .manager import ConfigurationManager
from .defaults import DEFAULT_CONFIG
from .schemas import ConfigSchema, ConfigValidationError

__all__ = [
    "ConfigurationManager",
    "DEFAULT_CONFIG",
    "ConfigSchema",
    "ConfigValidationError",
]
