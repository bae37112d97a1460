"""Logging setup for entry points."""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(debug: bool = False) -> None:
    """Configure root logging once; ``debug`` lowers the agent's own loggers to DEBUG."""
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
    # Keep third-party request logging quiet even in debug mode
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("profagent").setLevel(logging.DEBUG if debug else logging.INFO)
