"""In-process stack samplers."""

from __future__ import annotations

import logging
import os
import sys
import threading
import time
import tracemalloc
from collections import Counter
from typing import Dict, Optional, Tuple

import psutil

from profagent.profiles.samples import RawFrame, RawSample, SampleMode, SampleSet

logger = logging.getLogger(__name__)

Stack = Tuple[RawFrame, ...]


class Sampler:
    def sample(self, mode: SampleMode, interval: int, duration: float) -> SampleSet:
        """Block for ``duration`` seconds and return what was observed."""
        raise NotImplementedError


def walk_stack(frame, max_depth: int) -> Stack:
    """Frames from ``frame`` outwards, leaf first."""
    frames = []
    while frame is not None and len(frames) < max_depth:
        code = frame.f_code
        name = getattr(code, "co_qualname", code.co_name)
        frames.append(RawFrame(name=name, filename=code.co_filename, line=frame.f_lineno or 0))
        frame = frame.f_back
    return tuple(frames)


class StackSampler(Sampler):
    """Samples the current process.

    wall: every thread's stack on every tick.
    cpu: the stacks of threads whose CPU time (per psutil) advanced since the
    previous tick.
    alloc: tracemalloc tracebacks of blocks allocated during the window and
    still alive at its end; tracemalloc records no function names, so each
    frame is named after its source file.
    """

    def __init__(self, max_stack_depth: int = 128, tracemalloc_frames: int = 32):
        self.max_stack_depth = max_stack_depth
        self.tracemalloc_frames = tracemalloc_frames
        self._process = psutil.Process()

    def sample(self, mode: SampleMode, interval: int, duration: float) -> SampleSet:
        mode = SampleMode(mode)
        start = time.time()
        if mode is SampleMode.ALLOC:
            counts = self._sample_allocations(duration)
        else:
            counts = self._sample_stacks(mode, interval, duration)
        end = time.time()
        samples = tuple(RawSample(frames=stack, count=n) for stack, n in counts.items())
        logger.debug(
            "Sampled %s for %.1fs: stacks=%d ticks=%d",
            mode.value,
            duration,
            len(samples),
            sum(counts.values()),
        )
        return SampleSet(mode=mode, interval=interval, samples=samples, start_time=start, end_time=end)

    def _thread_cpu_times(self) -> Dict[int, float]:
        """CPU seconds per Python thread ident."""
        native_to_ident = {t.native_id: t.ident for t in threading.enumerate() if t.native_id is not None}
        times: Dict[int, float] = {}
        for th in self._process.threads():
            ident = native_to_ident.get(th.id)
            if ident is not None:
                times[ident] = th.user_time + th.system_time
        return times

    def _sample_stacks(self, mode: SampleMode, interval: int, duration: float) -> Counter:
        counts: Counter = Counter()
        own = threading.get_ident()
        tick = interval / 1_000_000
        deadline = time.monotonic() + duration
        last_cpu: Optional[Dict[int, float]] = self._thread_cpu_times() if mode is SampleMode.CPU else None

        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            time.sleep(min(tick, remaining))
            active = None
            if last_cpu is not None:
                cpu = self._thread_cpu_times()
                active = {ident for ident, t in cpu.items() if t > last_cpu.get(ident, 0.0)}
                last_cpu = cpu
            for ident, frame in sys._current_frames().items():
                if ident == own or (active is not None and ident not in active):
                    continue
                counts[walk_stack(frame, self.max_stack_depth)] += 1
        return counts

    def _sample_allocations(self, duration: float) -> Counter:
        started = not tracemalloc.is_tracing()
        if started:
            tracemalloc.start(self.tracemalloc_frames)
        try:
            before = tracemalloc.take_snapshot()
            time.sleep(duration)
            after = tracemalloc.take_snapshot()
        finally:
            if started:
                tracemalloc.stop()

        filters = [tracemalloc.Filter(False, tracemalloc.__file__), tracemalloc.Filter(False, __file__)]
        counts: Counter = Counter()
        for stat in after.filter_traces(filters).compare_to(before.filter_traces(filters), "traceback"):
            if stat.count_diff <= 0:
                continue
            # tracemalloc exposes tracebacks oldest frame first
            stack = tuple(
                RawFrame(name=os.path.basename(f.filename), filename=f.filename, line=f.lineno)
                for f in reversed(stat.traceback)
            )
            counts[stack] += stat.count_diff
        return counts
