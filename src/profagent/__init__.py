"""Continuous profiling agent for the Cloud Profiler API."""

from profagent.agents.profiler import ProfilerAgent
from profagent.core.config import AppConfig

__all__ = ["ProfilerAgent", "AppConfig"]

__version__ = "0.1.0"
