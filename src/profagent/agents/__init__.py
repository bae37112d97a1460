"""Agents."""

from .duration import DEFAULT_DURATION_SECONDS, parse_duration
from .profiler import MODES, ProfilerAgent, validate_service

__all__ = [
    "DEFAULT_DURATION_SECONDS",
    "parse_duration",
    "MODES",
    "ProfilerAgent",
    "validate_service",
]
