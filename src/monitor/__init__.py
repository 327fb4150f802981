"""
Cache Telemetry
Polling reporter, memory probes and slow operation timing
"""

from .probes import MemoryProbe, NullProbe, RusageProbe, TracemallocProbe, default_memory_probe
from .reporter import TelemetryReporter
from .snapshot import TelemetrySnapshot
from .timing import timed

__all__ = [
    'TelemetryReporter', 'TelemetrySnapshot',
    'MemoryProbe', 'NullProbe', 'RusageProbe', 'TracemallocProbe', 'default_memory_probe',
    'timed',
]
