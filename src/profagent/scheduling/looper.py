"""Run a unit of work forever with exponential backoff on failure."""

from __future__ import annotations

import logging
import random
import sys
import threading
from dataclasses import dataclass
from typing import Callable, Optional

from tenacity import RetryCallState
from tenacity.wait import wait_base, wait_exponential

from profagent.core.config import BackoffPolicy
from profagent.core.errors import RetryableError

Work = Callable[[], object]


class wait_backoff(wait_base):
    """Exponential wait with multiplicative jitter, or the server's requested delay.

    Jitter scales the exponential step by ``1 + jitter * r`` before the cap, so
    with ``multiplier >= 1 + jitter`` consecutive waits never shrink.
    """

    def __init__(self, policy: BackoffPolicy, jitter_source: Callable[[], float] = random.random):
        self.policy = policy
        self._random = jitter_source
        self._exponential = wait_exponential(
            multiplier=policy.min_backoff,
            exp_base=policy.multiplier,
            max=policy.max_backoff,
        )

    def __call__(self, retry_state: RetryCallState) -> float:
        p = self.policy
        exc = retry_state.outcome.exception() if retry_state.outcome is not None else None
        if isinstance(exc, RetryableError):
            return min(p.max_backoff, max(p.min_backoff, exc.retry_delay))
        step = self._exponential(retry_state)
        return min(p.max_backoff, step * (1 + p.jitter * self._random()))


@dataclass
class BackoffState:
    failures: int = 0
    delay: float = 0.0

    def reset(self) -> None:
        self.failures = 0
        self.delay = 0.0


class Looper:
    """Invoke ``work`` repeatedly on a background thread.

    Exceptions raised by ``work`` are logged and swallowed; each consecutive
    failure waits longer before the next attempt, up to
    ``policy.max_backoff``, and a success resets the delay.  ``stop()`` is the
    only way out of the loop.
    """

    def __init__(
        self,
        policy: Optional[BackoffPolicy] = None,
        logger: Optional[logging.Logger] = None,
        jitter_source: Optional[Callable[[], float]] = None,
        name: str = "profagent-looper",
    ):
        self.policy = policy or BackoffPolicy()
        self.logger = logger or logging.getLogger(__name__)
        self.state = BackoffState()
        self.name = name
        self.wait = wait_backoff(self.policy, jitter_source or random.random)
        self._stop = threading.Event()
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._exiting = False

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _failure_delay(self, work: Work) -> float:
        retry_state = RetryCallState(retry_object=None, fn=work, args=(), kwargs={})
        retry_state.attempt_number = self.state.failures
        retry_state.set_exception(sys.exc_info())
        return self.wait(retry_state)

    def step(self, work: Work) -> float:
        """Invoke ``work`` once and return how long to wait before the next call."""
        try:
            work()
        except Exception as exc:
            self.state.failures += 1
            self.state.delay = self._failure_delay(work)
            self.logger.warning(
                "Cycle failed (%d in a row), retrying in %.1fs: %s",
                self.state.failures,
                self.state.delay,
                exc,
            )
            self.logger.debug("Cycle failure detail", exc_info=True)
            return self.state.delay
        if self.state.failures:
            self.logger.info("Cycle succeeded after %d failures", self.state.failures)
        self.state.reset()
        return 0.0

    def _should_exit(self) -> bool:
        with self._lock:
            if self._stop.is_set():
                self._exiting = True
            return self._exiting

    def run(self, work: Work) -> None:
        """Loop until ``stop()``; waits are interrupted by the stop event."""
        self.logger.debug("Looper started")
        while not self._should_exit():
            delay = self.step(work)
            if delay > 0:
                self._stop.wait(delay)
        self.logger.debug("Looper stopped")

    def start(self, work: Work) -> None:
        """Run ``work`` forever on a daemon thread; a no-op if already running.

        Starting again while a stopped thread is still finishing its cycle
        cancels the pending stop instead of spawning a second loop.
        """
        with self._lock:
            self._stop.clear()
            if self.running and not self._exiting:
                return
            self._exiting = False
            self._thread = threading.Thread(target=self.run, args=(work,), name=self.name, daemon=True)
            self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
