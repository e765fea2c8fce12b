"""Custom exceptions for HoneyGuard."""

from typing import Any


class HoneyGuardError(Exception):
    """Base exception for all HoneyGuard errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(HoneyGuardError):
    """Configuration-related errors."""
    pass


class MalformedRecordError(HoneyGuardError):
    """An upstream honeypot record is missing required fields."""

    def __init__(self, origin: str, message: str, details: dict[str, Any] | None = None):
        super().__init__(f"[{origin}] {message}", details)
        self.origin = origin
