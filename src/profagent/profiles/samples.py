"""Raw sampler output consumed by the profile builder."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Tuple


class SampleMode(str, Enum):
    CPU = "cpu"
    WALL = "wall"
    ALLOC = "alloc"


@dataclass(frozen=True)
class RawFrame:
    name: str
    filename: str = ""
    line: int = 0


@dataclass(frozen=True)
class RawSample:
    """One distinct stack and the number of ticks it was observed.

    ``frames`` is ordered leaf first: ``frames[0]`` is the innermost call and
    ``frames[-1]`` the outermost.
    """

    frames: Tuple[RawFrame, ...]
    count: int


@dataclass(frozen=True)
class SampleSet:
    """Output of one sampling run.

    ``interval`` is in microseconds for cpu and wall, and in allocations per
    recorded allocation for alloc.  ``start_time``/``end_time`` are epoch
    seconds.
    """

    mode: SampleMode
    interval: int
    samples: Tuple[RawSample, ...] = field(default_factory=tuple)
    start_time: float = 0.0
    end_time: float = 0.0

    @property
    def total_count(self) -> int:
        return sum(s.count for s in self.samples)
