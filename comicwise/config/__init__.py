"""
Configuration Module

Settings loading and system-wide constants.
"""

from .constants import CacheKeys, CacheTTL, Stage
from .settings import Settings, get_settings, reload_settings

__all__ = [
    "Settings",
    "get_settings",
    "reload_settings",
    "CacheKeys",
    "CacheTTL",
    "Stage",
]
