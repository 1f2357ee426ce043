from .settings import CacheSettings, ReclamationSettings, SchedulerSettings, get_settings

__all__ = ["CacheSettings", "ReclamationSettings", "SchedulerSettings", "get_settings"]
