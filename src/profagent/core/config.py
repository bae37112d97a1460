"""Configuration loading and normalization.

The repository ships a sample config under ``configs/``.  This module turns
that YAML file into typed objects that the agent, the API client and the
looper can rely on.  Environment variables in YAML values are expanded to
keep access tokens out of the repo.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, model_validator

from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://cloudprofiler.googleapis.com/v2/"

_UNEXPANDED_RE = re.compile(r"\$\{[^}]*\}")


def _expand_env(text: str) -> str:
    """Expand ${VARS} inside YAML text."""
    return os.path.expandvars(text)


def _drop_unexpanded(data: Any, path: str = "") -> Any:
    """Remove values still holding a ${VAR} whose variable is unset."""
    if isinstance(data, dict):
        result = {}
        for k, v in data.items():
            key = f"{path}.{k}" if path else str(k)
            if isinstance(v, str) and _UNEXPANDED_RE.search(v):
                logger.warning("Config value %s references an unset variable: %s", key, v)
                continue
            result[k] = _drop_unexpanded(v, key)
        return result
    if isinstance(data, list):
        return [_drop_unexpanded(v, path) for v in data]
    return data


class AgentConfig(BaseModel):
    service: str
    project_id: str
    service_version: Optional[str] = None
    instance: Optional[str] = None
    zone: Optional[str] = None
    debug_logging: bool = False


class ApiConfig(BaseModel):
    api_base: str = DEFAULT_API_BASE
    access_token: Optional[str] = Field(
        default_factory=lambda: os.getenv("PROFAGENT_ACCESS_TOKEN")
    )
    # CreateProfile is a long poll; the server may hold it for up to an hour
    create_timeout: float = 3900.0
    update_timeout: float = 60.0


class SamplingConfig(BaseModel):
    # microseconds between ticks for cpu and wall profiles
    cpu_interval: int = Field(default=10_000, gt=0)
    wall_interval: int = Field(default=10_000, gt=0)
    # allocations represented by one recorded allocation
    alloc_interval: int = Field(default=1, gt=0)
    max_stack_depth: int = Field(default=128, gt=0)
    tracemalloc_frames: int = Field(default=32, gt=0)


class BackoffPolicy(BaseModel):
    """Delay growth between failed cycles, in seconds."""

    min_backoff: float = Field(default=1.0, gt=0)
    max_backoff: float = Field(default=3600.0, gt=0)
    multiplier: float = 1.5
    jitter: float = Field(default=0.25, ge=0)

    @model_validator(mode="after")
    def _check_growth(self) -> "BackoffPolicy":
        if self.max_backoff < self.min_backoff:
            raise ValueError("max_backoff must be >= min_backoff")
        # Jitter never lets a later delay undercut an earlier one
        if self.multiplier < 1 + self.jitter:
            raise ValueError("multiplier must be >= 1 + jitter")
        return self


class AppConfig(BaseModel):
    agent: AgentConfig
    api: ApiConfig = Field(default_factory=ApiConfig)
    sampling: SamplingConfig = Field(default_factory=SamplingConfig)
    backoff: BackoffPolicy = Field(default_factory=BackoffPolicy)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "AppConfig":
        raw = load_yaml(path)
        normalized = normalize_raw_config(raw)
        missing = [k for k in ("service", "project_id") if not normalized["agent"].get(k)]
        if missing:
            raise ConfigError(f"{path}: missing required agent settings: {', '.join(missing)}")
        return cls(**normalized)


def load_yaml(path: str | Path) -> dict[str, Any]:
    """Load YAML and expand environment variables.

    Values referencing an unset variable are dropped, so the field falls back
    to its default (or fails validation if required).
    """
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"config file not found: {p}")
    text = _expand_env(p.read_text(encoding="utf-8"))
    data = _drop_unexpanded(yaml.safe_load(text) or {})
    logger.debug("Loaded YAML: path=%s keys=%s", p, list(data.keys()))
    return data


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge dictionaries (override wins)."""
    result = dict(base)
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(result.get(k), dict):
            result[k] = deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def normalize_raw_config(raw: dict[str, Any]) -> dict[str, Any]:
    """Accept flat or sectioned config shapes and map them to AppConfig fields.

    Top-level ``service``/``project_id`` keys are folded into the ``agent``
    section, and ``PROFAGENT_SERVICE``/``PROFAGENT_PROJECT_ID`` override both.
    """
    agent_cfg = dict(raw.get("agent", {}) or {})
    for key in ("service", "project_id", "service_version", "instance", "zone", "debug_logging"):
        if key in raw and key not in agent_cfg:
            agent_cfg[key] = raw[key]

    env_overrides = {
        "service": os.getenv("PROFAGENT_SERVICE"),
        "project_id": os.getenv("PROFAGENT_PROJECT_ID"),
    }
    agent_cfg = deep_merge(agent_cfg, {k: v for k, v in env_overrides.items() if v})
    logger.debug("Normalizing config: agent_keys=%s", list(agent_cfg.keys()))

    normalized: dict[str, Any] = {"agent": agent_cfg}
    for section in ("api", "sampling", "backoff"):
        if raw.get(section):
            normalized[section] = raw[section]
    return normalized
