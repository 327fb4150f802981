"""
Resource Cache Layer
In-memory TTL + LRU store with canonical request keys and live stats
"""

from .errors import CacheError, InvalidKeyConstruction
from .key_generator import CacheKeyGenerator
from .sizing import estimate_size
from .store import CacheEntry, CacheStore, StatsSnapshot

__all__ = [
    'CacheStore', 'CacheEntry', 'StatsSnapshot',
    'CacheKeyGenerator', 'estimate_size',
    'CacheError', 'InvalidKeyConstruction',
]
