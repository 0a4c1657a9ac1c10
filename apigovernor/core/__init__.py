"""Core utilities for the governor."""

from apigovernor.core.cache import TTLCache
from apigovernor.core.config import Settings, settings
from apigovernor.core.logging import get_logger, setup_logging

__all__ = [
    "TTLCache",
    "Settings",
    "settings",
    "get_logger",
    "setup_logging",
]
