from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

import psutil

logger = logging.getLogger(__name__)

V = TypeVar("V")


@dataclass(frozen=True)
class CacheValue(Generic[V]):
    value: V
    expires_at: float  # time_fn() of the owning cache, usually time.monotonic()

    def __post_init__(self) -> None:
        if self.expires_at is None:
            raise ValueError("expires_at must be set")

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at


class ReclamationPolicy:
    """Decides whether cached payloads should be dropped to relieve memory."""

    def should_reclaim(self) -> bool:  # pragma: no cover - interface
        raise NotImplementedError


class NeverReclaim(ReclamationPolicy):
    """Payloads live exactly as long as their entry."""

    def should_reclaim(self) -> bool:
        return False


class RuntimeAdvised(ReclamationPolicy):
    """
    Follows the host memory-pressure signal reported by psutil.

    Pressure is reported while used system memory is at or above
    ``threshold_percent``. The probe result is reused for
    ``check_interval_seconds`` so lookups stay cheap.
    """

    def __init__(
        self,
        *,
        threshold_percent: float = 90.0,
        check_interval_seconds: float = 1.0,
        memory_probe: Callable[[], Any] = psutil.virtual_memory,
        time_fn: Callable[[], float] = time.monotonic,
    ):
        if not 0 < threshold_percent <= 100:
            raise ValueError("threshold_percent must be in (0, 100]")
        if check_interval_seconds < 0:
            raise ValueError("check_interval_seconds must be >= 0")
        self._threshold_percent = float(threshold_percent)
        self._check_interval_seconds = float(check_interval_seconds)
        self._memory_probe = memory_probe
        self._time_fn = time_fn
        self._lock = threading.Lock()
        self._checked_at: float | None = None
        self._under_pressure = False

    @property
    def threshold_percent(self) -> float:
        return self._threshold_percent

    def should_reclaim(self) -> bool:
        now = self._time_fn()
        with self._lock:
            if self._checked_at is not None and now - self._checked_at < self._check_interval_seconds:
                return self._under_pressure
            self._checked_at = now
            self._under_pressure = self._probe()
            return self._under_pressure

    def _probe(self) -> bool:
        try:
            percent = float(self._memory_probe().percent)
        except Exception:
            logger.warning("memory probe failed, assuming no pressure", exc_info=True)
            return False
        under_pressure = percent >= self._threshold_percent
        if under_pressure:
            logger.debug(
                "memory pressure detected used=%.1f%% threshold=%.1f%%",
                percent,
                self._threshold_percent,
            )
        return under_pressure


def build_policy(
    mode: str,
    *,
    threshold_percent: float = 90.0,
    check_interval_seconds: float = 1.0,
) -> ReclamationPolicy:
    normalized = str(mode or "never").strip().lower()
    if normalized == "never":
        return NeverReclaim()
    if normalized == "runtime":
        return RuntimeAdvised(
            threshold_percent=threshold_percent,
            check_interval_seconds=check_interval_seconds,
        )
    raise ValueError(f"Unknown reclamation mode: {mode!r}")


class ReclaimableHolder(Generic[V]):
    """
    Wraps a CacheValue that may be discarded under memory pressure.

    Clearing is one-way and driven by the reclamation policy, never by cache
    logic. Expiry and reclamation are independent conditions.
    """

    __slots__ = ("_value", "_policy")

    def __init__(self, value: CacheValue[V], policy: ReclamationPolicy):
        self._value: Optional[CacheValue[V]] = value
        self._policy = policy

    @property
    def reclaimed(self) -> bool:
        return self._value is None

    def try_read(self) -> Optional[CacheValue[V]]:
        value = self._value
        if value is None:
            return None
        if self._policy.should_reclaim():
            self._value = None
            return None
        return value

    def reclaim(self) -> None:
        self._value = None

    def is_expired(self, now: float) -> bool:
        value = self._value
        return value is not None and value.is_expired(now)
