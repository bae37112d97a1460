"""Profiler API client and resources."""

from .client import ProfilerClient
from .models import PROFILE_TYPES, Deployment, ProfileAssignment

__all__ = ["ProfilerClient", "Deployment", "ProfileAssignment", "PROFILE_TYPES"]
