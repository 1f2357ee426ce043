"""
Observability hook for cache activity.

Sinks only observe; they never influence cache behaviour, and a failing sink
is ignored.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

logger = logging.getLogger(__name__)


class CacheEventType(str, Enum):
    HIT = "hit"
    MISS = "miss"
    EXPIRED = "expired"
    RECLAIMED = "reclaimed"
    EVICTED = "evicted"
    SWEEP_STARTED = "sweep_started"
    SWEEP_STOPPED = "sweep_stopped"
    SWEEP_COMPLETED = "sweep_completed"


@dataclass(frozen=True)
class CacheEvent:
    cache: str
    type: CacheEventType
    key: Any = None
    cleared: int = 0
    duration_ms: Optional[float] = None
    timestamp: float = field(default_factory=time.time)


class TraceSink:
    def emit(self, event: CacheEvent) -> None:  # pragma: no cover - interface
        raise NotImplementedError


class NullTraceSink(TraceSink):
    def emit(self, event: CacheEvent) -> None:
        return None


class LoggingTraceSink(TraceSink):
    def __init__(self, target: logging.Logger | None = None, *, level: int = logging.DEBUG):
        self._logger = target or logging.getLogger("expiring_cache.events")
        self._level = level

    def emit(self, event: CacheEvent) -> None:
        if not self._logger.isEnabledFor(self._level):
            return
        if event.duration_ms is not None:
            self._logger.log(
                self._level,
                "cache=%s event=%s cleared=%s took=%.1fms",
                event.cache,
                event.type.value,
                event.cleared,
                event.duration_ms,
            )
            return
        self._logger.log(self._level, "cache=%s event=%s key=%r", event.cache, event.type.value, event.key)


def emit_safely(sink: TraceSink | None, event: CacheEvent) -> None:
    if sink is None:
        return
    try:
        sink.emit(event)
    except Exception:
        logger.debug("trace sink failed event=%s", event.type.value, exc_info=True)
