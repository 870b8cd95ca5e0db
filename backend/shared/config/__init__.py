"""
Configuration module: Settings, logging, constants.
"""

from shared.config.settings import settings, get_settings, DATABASE_URL, REDIS_URL
from shared.config.logging import get_logger, setup_logging
from shared.config.constants import Limits, SortField, SortOrder

__all__ = [
    # settings
    "settings",
    "get_settings",
    "DATABASE_URL",
    "REDIS_URL",
    # logging
    "get_logger",
    "setup_logging",
    # constants
    "Limits",
    "SortField",
    "SortOrder",
]
