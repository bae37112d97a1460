"""Profiler agent: polls the profiler API and uploads sampled profiles."""

from __future__ import annotations

import logging
import re
import time
from typing import Callable, Dict, Optional

from profagent.api.client import ProfilerClient
from profagent.api.models import PROFILE_TYPES, Deployment, ProfileAssignment
from profagent.core.config import AgentConfig, AppConfig, SamplingConfig
from profagent.core.errors import ConfigError, ProfAgentError
from profagent.profiles.builder import convert
from profagent.profiles.samples import SampleMode, SampleSet
from profagent.sampling.sampler import Sampler, StackSampler
from profagent.scheduling.looper import Looper

from .duration import parse_duration

SERVICE_RE = re.compile(r"^[a-z]([-a-z0-9_.]{0,253}[a-z0-9])?$")

# API profile type -> sampling mode
MODES: Dict[str, SampleMode] = {
    "CPU": SampleMode.CPU,
    "WALL": SampleMode.WALL,
    "HEAP_ALLOC": SampleMode.ALLOC,
}

Builder = Callable[[SampleSet, float, float], bytes]


def validate_service(service: str) -> str:
    if not isinstance(service, str) or SERVICE_RE.fullmatch(service) is None:
        raise ConfigError(f"service must match {SERVICE_RE.pattern}: {service!r}")
    return service


class ProfilerAgent:
    """Runs create → sample → encode → update cycles against the profiler API."""

    def __init__(
        self,
        config: AppConfig,
        client: Optional[ProfilerClient] = None,
        sampler: Optional[Sampler] = None,
        logger: Optional[logging.Logger] = None,
        builder: Builder = convert,
    ):
        agent_cfg: AgentConfig = config.agent
        self.service = validate_service(agent_cfg.service)
        self.project_id = agent_cfg.project_id
        self.config = config
        self.logger = logger or logging.getLogger(__name__)
        self._owns_client = client is None
        self.client = client or ProfilerClient(config.api)
        self.sampling: SamplingConfig = config.sampling
        self.sampler = sampler or StackSampler(
            max_stack_depth=self.sampling.max_stack_depth,
            tracemalloc_frames=self.sampling.tracemalloc_frames,
        )
        self.builder = builder

        labels = {"language": "python"}
        if agent_cfg.service_version is not None:
            labels["version"] = agent_cfg.service_version
        if agent_cfg.zone is not None:
            labels["zone"] = agent_cfg.zone
        self.labels = labels
        self.deployment = Deployment(project_id=self.project_id, target=self.service, labels=labels)

        self.profile_labels: Dict[str, str] = {}
        if agent_cfg.instance is not None:
            self.profile_labels["instance"] = agent_cfg.instance

        self.looper = Looper(config.backoff, logger=self.logger)

    def interval_for(self, mode: SampleMode) -> int:
        if mode is SampleMode.CPU:
            return self.sampling.cpu_interval
        if mode is SampleMode.WALL:
            return self.sampling.wall_interval
        return self.sampling.alloc_interval

    def create_profile(self) -> ProfileAssignment:
        self.logger.debug("creating profile")
        started = time.monotonic()
        assignment = self.client.create_profile(self.deployment, PROFILE_TYPES)
        self.logger.debug("got profile after %.3f seconds", time.monotonic() - started)
        return assignment

    def update_profile(self, assignment: ProfileAssignment) -> None:
        self.logger.debug("updating profile")
        self.client.update_profile(assignment)
        self.logger.debug("profile updated")

    def profile(self, duration: float, mode: SampleMode) -> bytes:
        """Sample for ``duration`` seconds and return the encoded profile."""
        sample_set = self.sampler.sample(mode, self.interval_for(mode), duration)
        return self.builder(sample_set, sample_set.start_time, sample_set.end_time)

    def profile_and_upload(self, assignment: ProfileAssignment) -> None:
        mode = MODES.get(assignment.profile_type)
        if mode is None:
            raise ProfAgentError(f"unsupported profile type: {assignment.profile_type}")
        self.logger.debug("profiling %s for %s", assignment.profile_type, assignment.duration)
        assignment.attach_bytes(self.profile(parse_duration(assignment.duration), mode))
        assignment.labels.update(self.profile_labels)
        self.update_profile(assignment)

    def run_cycle(self) -> None:
        self.profile_and_upload(self.create_profile())

    def start(self) -> None:
        """Begin profiling on a background thread; a no-op if already started."""
        if self.looper.running:
            return
        if self._owns_client and self.client.closed:
            self.client = ProfilerClient(self.config.api)
        self.logger.info("Starting profiler agent: service=%s project=%s", self.service, self.project_id)
        self.looper.start(self.run_cycle)

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop the loop; an API client created by the agent is closed too."""
        self.looper.stop(timeout)
        if self._owns_client:
            self.client.close()
