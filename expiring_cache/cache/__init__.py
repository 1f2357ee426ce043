from .bounded_map import BoundedOrderedMap
from .expiring_cache import ExpiringLimitedCache
from .holder import CacheValue, NeverReclaim, ReclaimableHolder, ReclamationPolicy, RuntimeAdvised, build_policy

__all__ = [
    "BoundedOrderedMap",
    "CacheValue",
    "ExpiringLimitedCache",
    "NeverReclaim",
    "ReclaimableHolder",
    "ReclamationPolicy",
    "RuntimeAdvised",
    "build_policy",
]
