"""Fetch results and the read-only snapshots the cache keeps of them."""

from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Mapping, Optional


def freeze(value: Any) -> Any:
    """Recursively turn dicts into read-only mappings and lists into tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({k: freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(item) for item in value)
    if isinstance(value, (set, frozenset)):
        return frozenset(freeze(item) for item in value)
    return value


def thaw(value: Any) -> Any:
    """Mutable deep copy of a frozen value, for callers that need to edit."""
    if isinstance(value, Mapping):
        return {k: thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [thaw(item) for item in value]
    if isinstance(value, frozenset):
        return {thaw(item) for item in value}
    return value


@dataclass(frozen=True)
class ResourceResult:
    """
    One fetch result.

    data is a single document mapping for document requests and a
    sequence of document mappings for search and listing requests.
    """

    kind: str
    data: Any
    has_more: bool = False
    total: Optional[int] = None
    fetched_at: float = field(default_factory=time.time)

    def frozen(self) -> "ResourceResult":
        return replace(self, data=freeze(self.data))
