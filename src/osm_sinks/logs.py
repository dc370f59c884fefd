"""Logging helpers."""
from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Iterator, Optional


@contextmanager
def log_step(message: str, logger: Optional[logging.Logger] = None) -> Iterator[None]:
    """Log the start of a long-running step and how long it took."""
    log = logger or logging.getLogger("osm_sinks")
    log.info("[step] %s", message)
    started = time.monotonic()
    try:
        yield
    finally:
        log.info("[step] %s took %.1fs", message, time.monotonic() - started)


__all__ = ["log_step"]
