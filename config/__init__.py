"""
Configuration module for the radioactive decay fit.

This module provides centralized configuration management using pydantic-settings,
ensuring type-safe access to environment variables and configuration parameters.

Example:
    >>> from config import settings
    >>> print(settings.fit.algorithm)
    >>> print(settings.fit.tolerance)
"""

from config.settings import (
    Settings,
    FitSettings,
    get_settings,
    settings,
)

__all__ = [
    "Settings",
    "FitSettings",
    "get_settings",
    "settings",
]
