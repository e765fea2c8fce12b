"""Core infrastructure for HoneyGuard."""

from honeyguard.core.config import Settings, get_settings
from honeyguard.core.exceptions import (
    ConfigurationError,
    HoneyGuardError,
    MalformedRecordError,
)
from honeyguard.core.logging import get_logger, setup_logging

__all__ = [
    "Settings",
    "get_settings",
    "get_logger",
    "setup_logging",
    "HoneyGuardError",
    "ConfigurationError",
    "MalformedRecordError",
]
