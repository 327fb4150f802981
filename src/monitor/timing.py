"""Slow operation detection."""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator

logger = logging.getLogger(__name__)

SLOW_OPERATION_MS = 100.0


@dataclass
class Timing:
    name: str
    started_at: float
    elapsed_ms: float = 0.0
    slow: bool = False


@contextmanager
def timed(
    name: str,
    threshold_ms: float = SLOW_OPERATION_MS,
    clock: Callable[[], float] = time.perf_counter,
) -> Iterator[Timing]:
    """Measure the wrapped block and warn when it exceeds threshold_ms.

    The timing is recorded whether the block returns or raises.
    """
    timing = Timing(name=name, started_at=clock())
    try:
        yield timing
    finally:
        timing.elapsed_ms = (clock() - timing.started_at) * 1000
        timing.slow = timing.elapsed_ms > threshold_ms
        if timing.slow:
            logger.warning("Slow operation detected: %s took %.2fms", name, timing.elapsed_ms)
