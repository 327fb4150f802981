"""Telemetry snapshot schema enforcement."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from jsonschema import Draft7Validator

SNAPSHOT_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": [
        "sampled_at",
        "cache_size",
        "cache_keys",
        "hit_count",
        "miss_count",
        "memory_bytes",
        "memory_status",
        "elapsed_ms",
        "sample_count",
    ],
    "properties": {
        "sampled_at": {"type": "string", "format": "date-time"},
        "cache_size": {"type": "integer", "minimum": 0},
        "cache_keys": {"type": "array", "items": {"type": "string"}},
        "hit_count": {"type": "integer", "minimum": 0},
        "miss_count": {"type": "integer", "minimum": 0},
        "hit_rate_percent": {"type": "number", "minimum": 0, "maximum": 100},
        "cache_bytes": {"type": "integer", "minimum": 0},
        "memory_bytes": {"type": ["integer", "null"], "minimum": 0},
        "memory_mb": {"type": ["number", "null"], "minimum": 0},
        "memory_status": {"type": "string", "enum": ["ok", "high", "unavailable"]},
        "elapsed_ms": {"type": "number", "minimum": 0},
        "sample_count": {"type": "integer", "minimum": 0},
    },
}

_validator = Draft7Validator(SNAPSHOT_SCHEMA)

HIGH_MEMORY_MB = 50


def validate_snapshot(payload: Dict[str, Any]) -> None:
    errors = sorted(_validator.iter_errors(payload), key=lambda e: list(e.path))
    if errors:
        messages = ", ".join(error.message for error in errors)
        raise ValueError(f"telemetry snapshot validation failed: {messages}")


@dataclass(frozen=True)
class TelemetrySnapshot:
    cache_size: int
    cache_keys: List[str]
    hit_count: int
    miss_count: int
    memory_bytes: Optional[int]
    elapsed_ms: float
    sample_count: int
    hit_rate_percent: float = 0.0
    cache_bytes: int = 0
    sampled_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def memory_mb(self) -> Optional[float]:
        if self.memory_bytes is None:
            return None
        return round(self.memory_bytes / 1024 / 1024, 1)

    @property
    def memory_status(self) -> str:
        if self.memory_mb is None:
            return "unavailable"
        return "high" if self.memory_mb > HIGH_MEMORY_MB else "ok"

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            "sampled_at": self.sampled_at,
            "cache_size": self.cache_size,
            "cache_keys": list(self.cache_keys),
            "hit_count": self.hit_count,
            "miss_count": self.miss_count,
            "hit_rate_percent": self.hit_rate_percent,
            "cache_bytes": self.cache_bytes,
            "memory_bytes": self.memory_bytes,
            "memory_mb": self.memory_mb,
            "memory_status": self.memory_status,
            "elapsed_ms": self.elapsed_ms,
            "sample_count": self.sample_count,
        }
        validate_snapshot(payload)
        return payload

    def summary_lines(self, max_keys: int = 5) -> List[str]:
        """Text for the monitor widget."""
        memory = "unavailable" if self.memory_mb is None else f"{self.memory_mb} MB"
        lines = [
            f"Cache Size: {self.cache_size} items",
            f"Hit Rate: {self.hit_rate_percent}% ({self.hit_count} hits / {self.miss_count} misses)",
            f"Memory Usage: {memory}",
            f"Load Time: {round(self.elapsed_ms)}ms",
            f"Samples: {self.sample_count}",
        ]
        if self.cache_keys:
            lines.append("Cached Items:")
            lines.extend(f"  {key}" for key in self.cache_keys[:max_keys])
            if len(self.cache_keys) > max_keys:
                lines.append(f"  +{len(self.cache_keys) - max_keys} more...")
        return lines
