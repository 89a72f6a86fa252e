"""Exceptions raised by the optimization core."""

from typing import Optional


class GEPAError(Exception):
    """Base error carrying a machine-readable reason code."""

    def __init__(self, reason: str, message: Optional[str] = None):
        """Initialize error with reason code and optional message."""
        self.reason = reason
        super().__init__(message or reason)


class ConfigurationError(GEPAError):
    """Invalid runner or option bounds, raised before any work starts."""


class InvalidArgumentsError(GEPAError):
    """Malformed call arguments."""

    def __init__(self, message: Optional[str] = None):
        super().__init__("invalid_args", message)


class InvalidRunnerResponseError(GEPAError):
    """Runner succeeded but its payload lacks a text output."""

    def __init__(self, message: Optional[str] = None):
        super().__init__("invalid_runner_response", message)
