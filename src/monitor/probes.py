"""Host memory probes. Not every runtime can report heap usage."""

from __future__ import annotations

import logging
import sys
import tracemalloc
from typing import Optional

try:
    import resource
except ImportError:  # Windows
    resource = None

logger = logging.getLogger(__name__)


class MemoryProbe:
    """sample() returns bytes in use, or None when unavailable."""

    name = "none"

    def sample(self) -> Optional[int]:
        return None


class NullProbe(MemoryProbe):
    pass


class TracemallocProbe(MemoryProbe):
    """Current Python heap traced by tracemalloc. None unless tracing."""

    name = "tracemalloc"

    def sample(self) -> Optional[int]:
        if not tracemalloc.is_tracing():
            return None
        current, _peak = tracemalloc.get_traced_memory()
        return current


class RusageProbe(MemoryProbe):
    """Peak resident set size of the process."""

    name = "rusage"

    def sample(self) -> Optional[int]:
        if resource is None:
            return None
        try:
            max_rss = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
        except (OSError, ValueError) as exc:
            logger.debug("getrusage failed: %s", exc)
            return None
        # Linux reports kilobytes, macOS bytes
        return max_rss if sys.platform == "darwin" else max_rss * 1024


def default_memory_probe() -> MemoryProbe:
    """Best probe this runtime supports."""
    if tracemalloc.is_tracing():
        return TracemallocProbe()
    if resource is not None:
        return RusageProbe()
    return NullProbe()
