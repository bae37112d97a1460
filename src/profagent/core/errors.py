"""Custom exception hierarchy."""

from __future__ import annotations

from typing import Optional


class ProfAgentError(Exception):
    """Base error."""


class ConfigError(ProfAgentError, ValueError):
    """Invalid configuration."""


class RemoteError(ProfAgentError):
    """Raised when a call to the profiler API fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RetryableError(RemoteError):
    """Remote failure carrying a server-requested delay before the next attempt."""

    def __init__(self, message: str, retry_delay: float, status_code: Optional[int] = None):
        super().__init__(message, status_code=status_code)
        self.retry_delay = retry_delay


class EncodingError(ProfAgentError):
    """Raised when sample data violates the profile builder's input contract."""
