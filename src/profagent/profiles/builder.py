"""Convert sampled stacks into pprof profiles."""

from __future__ import annotations

import logging
from typing import Dict, Generic, Hashable, List, Tuple, TypeVar

from profagent.core.errors import EncodingError

from . import schema
from .samples import RawFrame, SampleMode, SampleSet

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)

NANOS_PER_SECOND = 1_000_000_000
NANOS_PER_MICRO = 1_000

# mode -> (sample type, unit, multiplier from the sampler's interval unit)
VALUE_TYPES: Dict[SampleMode, Tuple[str, str, int]] = {
    SampleMode.CPU: ("cpu", "nanoseconds", NANOS_PER_MICRO),
    SampleMode.WALL: ("wall", "nanoseconds", NANOS_PER_MICRO),
    SampleMode.ALLOC: ("alloc_objects", "count", 1),
}


class InternTable(Generic[K]):
    """First-seen-order table mapping keys to dense indices.

    ``base`` is the index of the first inserted key: the string table starts
    at 0, pprof ids start at 1.
    """

    def __init__(self, base: int = 0):
        self._base = base
        self._index: Dict[K, int] = {}
        self._keys: List[K] = []

    def intern(self, key: K) -> Tuple[int, bool]:
        """Return ``(index, inserted)`` for ``key``."""
        idx = self._index.get(key)
        if idx is not None:
            return idx, False
        idx = self._base + len(self._keys)
        self._index[key] = idx
        self._keys.append(key)
        return idx, True

    def __len__(self) -> int:
        return len(self._keys)

    def __iter__(self):
        return iter(self._keys)


class ProfileBuilder:
    """Accumulates one pprof Profile; create a new builder per profile."""

    def __init__(self, mode: SampleMode, interval: int):
        if interval <= 0:
            raise EncodingError(f"sampling interval must be positive, got {interval}")
        sample_type, unit, scale = VALUE_TYPES[SampleMode(mode)]
        self.mode = SampleMode(mode)
        self.period = interval * scale

        self._profile = schema.Profile()
        self._strings: InternTable[str] = InternTable()
        self._strings.intern("")
        self._functions: InternTable[Tuple[str, str]] = InternTable(base=1)
        self._locations: InternTable[Tuple[int, int]] = InternTable(base=1)

        self._add_value_type(self._profile.sample_type.add(), "samples", "count")
        self._add_value_type(self._profile.sample_type.add(), sample_type, unit)
        self._add_value_type(self._profile.period_type, sample_type, unit)
        self._profile.period = self.period
        self._profile.default_sample_type = self._string_id(sample_type)

    def _string_id(self, value: str) -> int:
        idx, _ = self._strings.intern(value)
        return idx

    def _add_value_type(self, vt, type_: str, unit: str) -> None:
        vt.type = self._string_id(type_)
        vt.unit = self._string_id(unit)

    def function_id(self, name: str, filename: str) -> int:
        fid, inserted = self._functions.intern((name, filename))
        if inserted:
            fn = self._profile.function.add()
            fn.id = fid
            fn.name = self._string_id(name)
            fn.system_name = fn.name
            fn.filename = self._string_id(filename)
        return fid

    def location_id(self, frame: RawFrame) -> int:
        fid = self.function_id(frame.name, frame.filename)
        lid, inserted = self._locations.intern((fid, frame.line))
        if inserted:
            loc = self._profile.location.add()
            loc.id = lid
            line = loc.line.add()
            line.function_id = fid
            line.line = frame.line
        return lid

    def add_sample(self, frames, count: int) -> None:
        """Add one stack, leaf frame first."""
        if count < 0:
            raise EncodingError(f"sample count must be non-negative, got {count}")
        sample = self._profile.sample.add()
        sample.location_id.extend(self.location_id(frame) for frame in frames)
        sample.value.extend([count, count * self.period])

    def set_window(self, start_time: float, end_time: float) -> None:
        if end_time < start_time:
            raise EncodingError(f"profile window ends before it starts: {start_time} > {end_time}")
        start_ns = int(start_time * NANOS_PER_SECOND)
        self._profile.time_nanos = start_ns
        self._profile.duration_nanos = int(end_time * NANOS_PER_SECOND) - start_ns

    def string_table(self) -> List[str]:
        return list(self._strings)

    def build(self) -> bytes:
        del self._profile.string_table[:]
        self._profile.string_table.extend(self._strings)
        return schema.serialize_profile(self._profile)


def convert(sample_set: SampleSet, start_time: float, end_time: float) -> bytes:
    """Encode ``sample_set`` over the window ``[start_time, end_time]`` as gzipped pprof."""
    # Validate everything up front so a bad sample never yields a partial profile
    for raw in sample_set.samples:
        if raw.count < 0:
            raise EncodingError(f"sample count must be non-negative, got {raw.count}")

    builder = ProfileBuilder(sample_set.mode, sample_set.interval)
    builder.set_window(start_time, end_time)
    for raw in sample_set.samples:
        builder.add_sample(raw.frames, raw.count)
    data = builder.build()
    logger.debug(
        "Encoded %s profile: samples=%d strings=%d bytes=%d",
        builder.mode.value,
        len(sample_set.samples),
        len(builder.string_table()),
        len(data),
    )
    return data
