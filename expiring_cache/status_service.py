from __future__ import annotations

import threading
from collections import deque
from datetime import datetime
from functools import lru_cache
from typing import Any

from .trace import CacheEvent, CacheEventType, TraceSink

_COUNTED_EVENTS = {
    CacheEventType.HIT: "hits",
    CacheEventType.MISS: "misses",
    CacheEventType.EXPIRED: "expired",
    CacheEventType.RECLAIMED: "reclaimed",
    CacheEventType.EVICTED: "evicted",
    CacheEventType.SWEEP_COMPLETED: "sweeps",
}


def _format_time(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp).strftime("%Y-%m-%d %H:%M:%S")


def _new_summary(name: str) -> dict[str, Any]:
    return {
        "name": name,
        "sweep_active": False,
        "hits": 0,
        "misses": 0,
        "expired": 0,
        "reclaimed": 0,
        "evicted": 0,
        "sweeps": 0,
        "cleared_total": 0,
        "last_sweep_ms": None,
        "updated_at": None,
    }


class CacheStatusService(TraceSink):
    """
    Aggregates trace events per cache name.

    Keeps running counters and a bounded history of recent events so the
    status API can report what each cache has been doing.
    """

    def __init__(self, *, max_events: int = 500) -> None:
        if max_events < 1:
            raise ValueError("max_events must be >= 1")
        self._lock = threading.Lock()
        self._caches: dict[str, dict[str, Any]] = {}
        self._events: dict[str, deque[dict[str, Any]]] = {}
        self._event_counters: dict[str, int] = {}
        self._max_events = max_events

    def emit(self, event: CacheEvent) -> None:
        with self._lock:
            summary = self._caches.get(event.cache)
            if summary is None:
                summary = _new_summary(event.cache)
                self._caches[event.cache] = summary
            counter_name = _COUNTED_EVENTS.get(event.type)
            if counter_name:
                summary[counter_name] += 1
            if event.type == CacheEventType.SWEEP_STARTED:
                summary["sweep_active"] = True
            elif event.type == CacheEventType.SWEEP_STOPPED:
                summary["sweep_active"] = False
            elif event.type == CacheEventType.SWEEP_COMPLETED:
                summary["cleared_total"] += event.cleared
                summary["last_sweep_ms"] = event.duration_ms
            summary["updated_at"] = _format_time(event.timestamp)

            counter = self._event_counters.get(event.cache, 0) + 1
            self._event_counters[event.cache] = counter
            buffer = self._events.setdefault(event.cache, deque(maxlen=self._max_events))
            buffer.append(
                {
                    "id": counter,
                    "time": _format_time(event.timestamp),
                    "type": event.type.value,
                    "key": None if event.key is None else repr(event.key),
                    "cleared": event.cleared,
                    "duration_ms": event.duration_ms,
                }
            )

    def list_caches(self) -> list[dict[str, Any]]:
        with self._lock:
            return [dict(item) for item in self._caches.values()]

    def get_cache(self, name: str) -> dict[str, Any] | None:
        with self._lock:
            item = self._caches.get(name)
            return dict(item) if item is not None else None

    def get_events(self, name: str, *, cursor: int = 0, limit: int = 200) -> dict[str, Any]:
        with self._lock:
            buffer = self._events.get(name, deque())
            items = [item for item in buffer if int(item.get("id") or 0) > cursor]
            if limit > 0:
                items = items[-limit:]
            next_cursor = items[-1]["id"] if items else cursor
            return {"items": items, "cursor": next_cursor}

    def clear(self, name: str | None = None) -> None:
        with self._lock:
            if not name or name == "all":
                self._caches.clear()
                self._events.clear()
                self._event_counters.clear()
                return
            self._caches.pop(name, None)
            self._events.pop(name, None)
            self._event_counters.pop(name, None)

    def clear_events(self, name: str) -> None:
        with self._lock:
            self._events.pop(name, None)


@lru_cache()
def get_status_service() -> CacheStatusService:
    return CacheStatusService()
