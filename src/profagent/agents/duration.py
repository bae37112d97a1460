"""Parsing of profile durations as returned by the profiler API."""

from __future__ import annotations

import re
from typing import Optional

DEFAULT_DURATION_SECONDS = 10

_DURATION_RE = re.compile(r"(\d+)s", re.ASCII)


def parse_duration(duration: Optional[str]) -> int:
    """Convert a duration such as ``"10s"`` to whole seconds.

    The API's duration format is undocumented and ``"10s"`` is the only known
    shape, so anything that does not match ``<digits>s`` exactly yields
    ``DEFAULT_DURATION_SECONDS`` instead of raising.
    """
    if not isinstance(duration, str):
        return DEFAULT_DURATION_SECONDS
    m = _DURATION_RE.fullmatch(duration)
    if m is None:
        return DEFAULT_DURATION_SECONDS
    return int(m.group(1))
