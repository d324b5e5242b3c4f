"""Errors raised by scalers."""

from typing import Optional


class ScalerError(Exception):
    """Base class for all scaler errors."""


class ConfigurationError(ScalerError, ValueError):
    """Trigger metadata or authentication could not be used to build a scaler.

    Raised only while constructing a scaler; a scaler is never created from
    configuration that fails validation.
    """


class QueryError(ScalerError):
    """A metric backend call failed for a single poll.

    The scaler remains usable; the next poll is the retry.
    """

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code
