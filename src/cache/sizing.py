"""Approximate in-memory size of cached values."""

import sys
from collections.abc import Mapping
from dataclasses import fields, is_dataclass
from typing import Any, Optional, Set


def estimate_size(value: Any, _seen: Optional[Set[int]] = None) -> int:
    """
    Walk a value and add up ``sys.getsizeof`` for everything reachable.

    Shared sub-objects are counted once. Good enough for a memory budget,
    not meant to be exact.
    """
    if _seen is None:
        _seen = set()

    obj_id = id(value)
    if obj_id in _seen:
        return 0
    _seen.add(obj_id)

    size = sys.getsizeof(value)

    if isinstance(value, (str, bytes, bytearray, int, float, bool)) or value is None:
        return size

    if isinstance(value, Mapping):
        for k, v in value.items():
            size += estimate_size(k, _seen)
            size += estimate_size(v, _seen)
    elif isinstance(value, (list, tuple, set, frozenset)):
        for item in value:
            size += estimate_size(item, _seen)
    elif is_dataclass(value) and not isinstance(value, type):
        for f in fields(value):
            size += estimate_size(getattr(value, f.name), _seen)
    elif hasattr(value, "__dict__"):
        size += estimate_size(vars(value), _seen)

    return size
