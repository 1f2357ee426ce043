from .cleanup_scheduler import (
    CleanupScheduler,
    RecurringScheduler,
    ScheduledHandle,
    get_default_scheduler,
    get_shared_scheduler,
)

__all__ = [
    "CleanupScheduler",
    "RecurringScheduler",
    "ScheduledHandle",
    "get_default_scheduler",
    "get_shared_scheduler",
]
