"""
Shared fixtures: sample stacks, configs, and fakes for the API client and sampler.
"""
from __future__ import annotations

import threading
from typing import List, Optional

import pytest

from profagent.api.models import Deployment, ProfileAssignment
from profagent.core.config import AgentConfig, AppConfig, BackoffPolicy
from profagent.profiles.samples import RawFrame, RawSample, SampleMode, SampleSet


def frame(name: str, filename: str = "app.py", line: int = 0) -> RawFrame:
    return RawFrame(name=name, filename=filename, line=line)


@pytest.fixture
def cpu_sample_set() -> SampleSet:
    """Three stacks sharing frames; leaf frame first."""
    main = frame("main", "main.py", 1)
    return SampleSet(
        mode=SampleMode.CPU,
        interval=1000,
        samples=(
            RawSample(frames=(frame("parse", "lib.py", 30), frame("load", "lib.py", 12), main), count=4),
            RawSample(frames=(frame("load", "lib.py", 12), main), count=2),
            RawSample(frames=(frame("parse", "lib.py", 41), main), count=1),
        ),
        start_time=100.0,
        end_time=105.0,
    )


@pytest.fixture
def app_config() -> AppConfig:
    return AppConfig(
        agent=AgentConfig(service="my-service", project_id="proj-1", instance="host-7"),
        backoff=BackoffPolicy(min_backoff=0.001, max_backoff=0.01, multiplier=2.0, jitter=0.0),
    )


class FakeClient:
    """Stands in for ProfilerClient; serves queued assignments."""

    def __init__(self, assignments: Optional[List[ProfileAssignment]] = None):
        self.assignments = list(assignments or [])
        self.created: List[Deployment] = []
        self.updated: List[ProfileAssignment] = []
        self.update_event = threading.Event()
        self.create_error: Optional[Exception] = None
        self.close_calls = 0

    def create_profile(self, deployment, profile_types=()):
        self.created.append(deployment)
        if self.create_error is not None:
            raise self.create_error
        if self.assignments:
            return self.assignments.pop(0)
        return ProfileAssignment(name="projects/proj-1/profiles/next", profile_type="WALL", duration="1s")

    def update_profile(self, assignment):
        self.updated.append(assignment)
        self.update_event.set()
        return assignment

    def close(self):
        self.close_calls += 1


class FakeSampler:
    """Returns a fixed single-stack SampleSet and records each request."""

    def __init__(self):
        self.calls = []

    def sample(self, mode, interval, duration):
        self.calls.append((mode, interval, duration))
        return SampleSet(
            mode=mode,
            interval=interval,
            samples=(RawSample(frames=(frame("work", "svc.py", 9), frame("main", "svc.py", 1)), count=3),),
            start_time=1000.0,
            end_time=1000.0 + duration,
        )


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def fake_sampler() -> FakeSampler:
    return FakeSampler()
