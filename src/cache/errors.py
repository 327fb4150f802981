"""Error types shared by the cache and the services built on it."""


class CacheError(Exception):
    """Base class for resource cache errors."""


class InvalidKeyConstruction(CacheError, ValueError):
    """A request could not be turned into a stable cache key.

    This is a programming defect (unsupported parameter type), never a
    runtime condition to recover from.
    """
