"""Tests for the built-in in-process sampler."""
import sys
import threading
import time

from profagent.profiles.samples import SampleMode
from profagent.sampling.sampler import StackSampler, walk_stack


def _names(sample_set):
    return {f.name.rsplit(".", 1)[-1] for s in sample_set.samples for f in s.frames}


class Worker:
    """Runs ``target`` on a thread until stopped."""

    def __init__(self, target):
        self.done = threading.Event()
        self.thread = threading.Thread(target=target, args=(self.done,), daemon=True)

    def __enter__(self):
        self.thread.start()
        # let the thread settle into its loop before sampling starts
        time.sleep(0.1)
        return self

    def __exit__(self, *exc):
        self.done.set()
        self.thread.join(5)


def _idle_worker(done):
    done.wait(10)


def _busy_worker(done):
    n = 0
    while not done.is_set():
        n += 1


class TestWalkStack:

    def test_leaf_first(self):
        stack = walk_stack(sys._getframe(), max_depth=128)
        assert stack[0].name.endswith("test_leaf_first")
        assert stack[0].filename == __file__
        assert stack[0].line > 0

    def test_depth_limit(self):
        assert len(walk_stack(sys._getframe(), max_depth=2)) == 2


class TestStackSampler:

    def test_wall_sees_idle_thread(self):
        with Worker(_idle_worker):
            result = StackSampler().sample(SampleMode.WALL, 5_000, 0.2)
        assert result.mode is SampleMode.WALL
        assert result.interval == 5_000
        assert "_idle_worker" in _names(result)
        assert result.end_time >= result.start_time + 0.19
        assert all(s.count > 0 for s in result.samples)

    def test_sampling_thread_excluded(self):
        result = StackSampler().sample(SampleMode.WALL, 5_000, 0.05)
        assert "_sample_stacks" not in _names(result)

    def test_cpu_sees_busy_thread_only(self):
        with Worker(_busy_worker), Worker(_idle_worker):
            result = StackSampler().sample(SampleMode.CPU, 10_000, 0.5)
        names = _names(result)
        assert "_busy_worker" in names
        assert "_idle_worker" not in names

    def test_alloc_counts_live_allocations(self):
        kept = []

        def allocate(done):
            while not done.is_set():
                kept.append([object() for _ in range(10)])
                time.sleep(0.001)

        with Worker(allocate):
            result = StackSampler().sample(SampleMode.ALLOC, 1, 0.2)
        assert result.mode is SampleMode.ALLOC
        assert result.total_count > 0
        assert any(f.filename == __file__ for s in result.samples for f in s.frames)
