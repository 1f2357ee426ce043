from __future__ import annotations

import logging
import math
import threading
import time
from datetime import timedelta
from typing import Callable, Generic, Optional, TypeVar

from ..config.settings import CacheSettings, get_settings
from ..scheduling import RecurringScheduler, ScheduledHandle, get_default_scheduler, get_shared_scheduler
from ..trace import CacheEvent, CacheEventType, TraceSink, emit_safely
from .bounded_map import BoundedOrderedMap
from .holder import CacheValue, NeverReclaim, ReclaimableHolder, ReclamationPolicy, build_policy

logger = logging.getLogger(__name__)

K = TypeVar("K")
V = TypeVar("V")


class _KeyLoad:
    __slots__ = ("lock", "waiters")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.waiters = 0


class ExpiringLimitedCache(Generic[K, V]):
    """
    Caches values until
      - ``expiration_seconds`` (>= 1) elapsed; a background sweep removes
        stale entries in batches, so they may linger up to half an interval
        longer, but ``get`` never returns them
      - more than ``max_size`` (>= 1) entries are stored; the oldest insertion
        is dropped
      - the reclamation policy reports memory pressure

    The sweep runs on a shared scheduler while the cache holds entries and is
    cancelled as soon as the cache drains.
    """

    def __init__(
        self,
        name: str = "cache",
        *,
        expiration_seconds: float | timedelta,
        max_size: int,
        scheduler: Optional[RecurringScheduler] = None,
        reclamation: Optional[ReclamationPolicy] = None,
        trace_sink: Optional[TraceSink] = None,
        time_fn: Callable[[], float] = time.monotonic,
    ):
        if isinstance(expiration_seconds, timedelta):
            expiration_seconds = expiration_seconds.total_seconds()
        if expiration_seconds is None or not math.isfinite(expiration_seconds) or expiration_seconds < 1:
            raise ValueError("expiration_seconds must be a finite number >= 1")
        if max_size < 1:
            raise ValueError("max_size must be >= 1")

        self._name = name
        self._expiration_seconds = float(expiration_seconds)
        self._table: BoundedOrderedMap[K, ReclaimableHolder[V]] = BoundedOrderedMap(max_size)
        self._scheduler = scheduler if scheduler is not None else get_default_scheduler()
        self._reclamation = reclamation if reclamation is not None else NeverReclaim()
        self._trace_sink = trace_sink
        self._time_fn = time_fn

        self._lock = threading.RLock()
        self._sweep_lock = threading.Lock()
        self._sweep_handle: Optional[ScheduledHandle] = None

        self._loads_lock = threading.Lock()
        self._loads: dict[K, _KeyLoad] = {}

    @classmethod
    def from_settings(
        cls,
        settings: Optional[CacheSettings] = None,
        *,
        name: Optional[str] = None,
        scheduler: Optional[RecurringScheduler] = None,
        trace_sink: Optional[TraceSink] = None,
    ) -> "ExpiringLimitedCache[K, V]":
        """
        Builds a cache from ``settings`` (the loaded configuration when omitted).

        Without an explicit ``scheduler`` the sweep runs on the scheduler shared
        by caches with the same ``settings.scheduler`` pool shape.
        """
        if settings is None:
            settings = get_settings()
        if scheduler is None:
            scheduler = get_shared_scheduler(settings.scheduler.workers, settings.scheduler.thread_name_prefix)
        reclamation = settings.reclamation
        return cls(
            name or settings.name,
            expiration_seconds=settings.expiration_seconds,
            max_size=settings.max_size,
            scheduler=scheduler,
            reclamation=build_policy(
                reclamation.mode,
                threshold_percent=reclamation.threshold_percent,
                check_interval_seconds=reclamation.check_interval_seconds,
            ),
            trace_sink=trace_sink,
        )

    @property
    def name(self) -> str:
        return self._name

    @property
    def expiration_seconds(self) -> float:
        return self._expiration_seconds

    @property
    def max_size(self) -> int:
        return self._table.max_size

    @property
    def sweep_active(self) -> bool:
        return self._sweep_handle is not None

    def put(self, key: K, value: V) -> None:
        if key is None:
            raise ValueError("key must not be None")
        if value is None:
            raise ValueError("value must not be None")
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("cache=%s put key[hash=%s]: %r", self._name, hash(key), key)

        holder = ReclaimableHolder(
            CacheValue(value, self._time_fn() + self._expiration_seconds),
            self._reclamation,
        )
        with self._lock:
            evicted = self._table.put(key, holder)
        for evicted_key, _ in evicted:
            logger.debug("cache=%s evicted key=%r over max_size=%s", self._name, evicted_key, self.max_size)
            self._emit(CacheEventType.EVICTED, key=evicted_key)
        self._start_sweep_if_required()

    def get(self, key: K) -> Optional[V]:
        if key is None:
            raise ValueError("key must not be None")
        with self._lock:
            holder = self._table.get(key)
        if holder is None:
            logger.debug("cache=%s key=%r not in cache", self._name, key)
            self._emit(CacheEventType.MISS, key=key)
            return None

        value = holder.try_read()
        if value is None:
            logger.debug("cache=%s value for key=%r was reclaimed", self._name, key)
            self._discard(key, holder)
            self._emit(CacheEventType.RECLAIMED, key=key)
            return None
        if value.is_expired(self._time_fn()):
            logger.debug("cache=%s key=%r is expired", self._name, key)
            self._discard(key, holder)
            self._emit(CacheEventType.EXPIRED, key=key)
            return None

        self._emit(CacheEventType.HIT, key=key)
        return value.value

    def compute_if_absent(self, key: K, supplier: Callable[[], V]) -> V:
        value = self.get(key)
        if value is not None:
            return value

        load = self._acquire_load(key)
        try:
            with load.lock:
                # Another loader may have stored it while we waited.
                value = self._peek(key)
                if value is not None:
                    return value
                value = supplier()
                if value is None:
                    raise ValueError("supplier must not return None")
                self.put(key, value)
                return value
        finally:
            self._release_load(key, load)

    def size(self) -> int:
        with self._lock:
            return len(self._table)

    def close(self) -> None:
        with self._sweep_lock:
            with self._lock:
                self._table.clear()
                handle = self._sweep_handle
                self._sweep_handle = None
            if handle is not None:
                self._scheduler.cancel(handle)
        if handle is not None:
            logger.debug("cache=%s closed, cleanup sweep cancelled", self._name)
            self._emit(CacheEventType.SWEEP_STOPPED)

    # ------------------------------------------------------------------ #
    # Sweep lifecycle
    # ------------------------------------------------------------------ #
    def _start_sweep_if_required(self) -> None:
        if self._sweep_handle is not None:
            return
        with self._sweep_lock:
            # Another put may have won the race while we waited.
            if self._sweep_handle is not None:
                return
            logger.debug("cache=%s starting cleanup sweep", self._name)
            self._sweep_handle = self._scheduler.schedule_recurring(
                self._run_cleanup,
                initial_delay=self._expiration_seconds,
                period=self._expiration_seconds / 2,
                name=f"{self._name}-cache-cleanup",
            )
        self._emit(CacheEventType.SWEEP_STARTED)

    def _stop_sweep_if_idle(self) -> None:
        if self.size() > 0 or self._sweep_handle is None:
            return
        with self._sweep_lock:
            with self._lock:
                # Re-check under the table lock so a racing put either lands
                # before this check or observes the cleared handle.
                if len(self._table) > 0 or self._sweep_handle is None:
                    return
                handle = self._sweep_handle
                self._sweep_handle = None
            logger.debug("cache=%s stopping cleanup sweep", self._name)
            self._scheduler.cancel(handle)
        self._emit(CacheEventType.SWEEP_STOPPED)

    def _run_cleanup(self) -> None:
        started = time.perf_counter()
        now = self._time_fn()

        with self._lock:
            snapshot = self._table.items()
        stale = [(key, holder) for key, holder in snapshot if self._is_stale(key, holder, now)]
        with self._lock:
            cleared = sum(1 for key, holder in stale if self._table.remove_if_same(key, holder))

        duration_ms = (time.perf_counter() - started) * 1000
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("cache=%s cleared %sx cached entries, took %.1fms", self._name, cleared, duration_ms)
        self._emit(CacheEventType.SWEEP_COMPLETED, cleared=cleared, duration_ms=duration_ms)

        self._stop_sweep_if_idle()

    def _is_stale(self, key: K, holder: ReclaimableHolder[V], now: float) -> bool:
        try:
            value = holder.try_read()
            return value is None or value.is_expired(now)
        except Exception:
            logger.warning("cache=%s could not inspect key=%r, dropping it", self._name, key, exc_info=True)
            return True

    def _peek(self, key: K) -> Optional[V]:
        with self._lock:
            holder = self._table.get(key)
        if holder is None:
            return None
        value = holder.try_read()
        if value is None or value.is_expired(self._time_fn()):
            return None
        return value.value

    def _discard(self, key: K, holder: ReclaimableHolder[V]) -> None:
        with self._lock:
            self._table.remove_if_same(key, holder)
        self._stop_sweep_if_idle()

    # ------------------------------------------------------------------ #
    # Internal
    # ------------------------------------------------------------------ #
    def _acquire_load(self, key: K) -> _KeyLoad:
        with self._loads_lock:
            load = self._loads.get(key)
            if load is None:
                load = _KeyLoad()
                self._loads[key] = load
            load.waiters += 1
            return load

    def _release_load(self, key: K, load: _KeyLoad) -> None:
        with self._loads_lock:
            load.waiters -= 1
            if load.waiters <= 0 and self._loads.get(key) is load:
                del self._loads[key]

    def _emit(
        self,
        event_type: CacheEventType,
        *,
        key: object = None,
        cleared: int = 0,
        duration_ms: Optional[float] = None,
    ) -> None:
        if self._trace_sink is None:
            return
        emit_safely(
            self._trace_sink,
            CacheEvent(cache=self._name, type=event_type, key=key, cleared=cleared, duration_ms=duration_ms),
        )

    def __len__(self) -> int:
        return self.size()

    def __enter__(self) -> "ExpiringLimitedCache[K, V]":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"ExpiringLimitedCache(name={self._name!r}, expiration_seconds={self._expiration_seconds}, "
            f"max_size={self.max_size}, size={self.size()})"
        )
