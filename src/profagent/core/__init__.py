"""Core utilities."""

from .config import AgentConfig, ApiConfig, AppConfig, BackoffPolicy, SamplingConfig
from .errors import ConfigError, EncodingError, ProfAgentError, RemoteError, RetryableError
from .logging import configure_logging

__all__ = [
    "AppConfig",
    "AgentConfig",
    "ApiConfig",
    "SamplingConfig",
    "BackoffPolicy",
    "ProfAgentError",
    "ConfigError",
    "RemoteError",
    "RetryableError",
    "EncodingError",
    "configure_logging",
]
