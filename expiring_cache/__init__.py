"""
Bounded, time-limited key/value cache.

Entries are dropped when they expire, when the entry cap is exceeded, or when
the host runs short of memory.
"""

from .cache import (
    BoundedOrderedMap,
    CacheValue,
    ExpiringLimitedCache,
    NeverReclaim,
    ReclaimableHolder,
    ReclamationPolicy,
    RuntimeAdvised,
)
from .scheduling import CleanupScheduler, RecurringScheduler, ScheduledHandle, get_default_scheduler
from .trace import CacheEvent, CacheEventType, LoggingTraceSink, NullTraceSink, TraceSink

__version__ = "0.1.0"

__all__ = [
    "BoundedOrderedMap",
    "CacheEvent",
    "CacheEventType",
    "CacheValue",
    "CleanupScheduler",
    "ExpiringLimitedCache",
    "LoggingTraceSink",
    "NeverReclaim",
    "NullTraceSink",
    "ReclaimableHolder",
    "ReclamationPolicy",
    "RecurringScheduler",
    "RuntimeAdvised",
    "ScheduledHandle",
    "TraceSink",
    "get_default_scheduler",
]
