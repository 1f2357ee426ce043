from __future__ import annotations

import heapq
import itertools
import logging
import threading
import time
from typing import TYPE_CHECKING, Callable, Optional

if TYPE_CHECKING:
    from ..config.settings import SchedulerSettings

logger = logging.getLogger(__name__)

DEFAULT_THREAD_NAME_PREFIX = "Cache-Cleanup-Executor"


class ScheduledHandle:
    """Handle to a recurring task registered with a scheduler."""

    __slots__ = ("task_id", "name", "task", "period", "next_run", "_cancelled")

    def __init__(self, *, task_id: int, name: str, task: Callable[[], None], period: float, next_run: float):
        self.task_id = task_id
        self.name = name
        self.task = task
        self.period = period
        self.next_run = next_run
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def __repr__(self) -> str:
        return f"ScheduledHandle(task_id={self.task_id}, name={self.name!r}, cancelled={self._cancelled})"


class RecurringScheduler:
    def schedule_recurring(
        self,
        task: Callable[[], None],
        *,
        initial_delay: float,
        period: float,
        name: Optional[str] = None,
    ) -> ScheduledHandle:  # pragma: no cover - interface
        raise NotImplementedError

    def cancel(self, handle: ScheduledHandle) -> bool:  # pragma: no cover - interface
        raise NotImplementedError

    def pending_count(self) -> int:  # pragma: no cover - interface
        raise NotImplementedError


class CleanupScheduler(RecurringScheduler):
    """
    Runs recurring tasks on a small pool of daemon threads.

    Tasks are kept in a heap ordered by their next planned run. A task is
    re-queued only after its current run returns, so it never overlaps with
    itself. Cancelling marks the handle and returns immediately; a run that
    is already executing is allowed to finish.
    """

    def __init__(
        self,
        *,
        workers: int = 1,
        thread_name_prefix: str = DEFAULT_THREAD_NAME_PREFIX,
        time_fn: Callable[[], float] = time.monotonic,
    ):
        if workers < 1:
            raise ValueError("workers must be >= 1")
        self._workers = workers
        self._thread_name_prefix = thread_name_prefix or DEFAULT_THREAD_NAME_PREFIX
        self._time_fn = time_fn

        self._stop = threading.Event()
        self._cond = threading.Condition()
        self._heap: list[tuple[float, int, ScheduledHandle]] = []
        self._live: dict[int, ScheduledHandle] = {}
        self._threads: list[threading.Thread] = []
        self._ids = itertools.count(1)
        self._seq = itertools.count()

    @classmethod
    def from_settings(cls, settings: "SchedulerSettings") -> "CleanupScheduler":
        return cls(workers=settings.workers, thread_name_prefix=settings.thread_name_prefix)

    @property
    def workers(self) -> int:
        return self._workers

    @property
    def threads(self) -> list[threading.Thread]:
        with self._cond:
            return list(self._threads)

    def schedule_recurring(
        self,
        task: Callable[[], None],
        *,
        initial_delay: float,
        period: float,
        name: Optional[str] = None,
    ) -> ScheduledHandle:
        if initial_delay < 0:
            raise ValueError("initial_delay must be >= 0")
        if period <= 0:
            raise ValueError("period must be > 0")
        with self._cond:
            if self._stop.is_set():
                raise RuntimeError("scheduler has been shut down")
            task_id = next(self._ids)
            handle = ScheduledHandle(
                task_id=task_id,
                name=name or f"task-{task_id}",
                task=task,
                period=float(period),
                next_run=self._time_fn() + float(initial_delay),
            )
            self._live[task_id] = handle
            heapq.heappush(self._heap, (handle.next_run, next(self._seq), handle))
            self._start_threads()
            self._cond.notify()
        logger.debug(
            "scheduled task=%s initial_delay=%.3fs period=%.3fs",
            handle.name,
            initial_delay,
            period,
        )
        return handle

    def cancel(self, handle: ScheduledHandle) -> bool:
        with self._cond:
            if handle._cancelled:
                return False
            handle._cancelled = True
            self._live.pop(handle.task_id, None)
            self._cond.notify_all()
        logger.debug("cancelled task=%s", handle.name)
        return True

    def pending_count(self) -> int:
        with self._cond:
            return len(self._live)

    def shutdown(self) -> None:
        self._stop.set()
        with self._cond:
            for handle in self._live.values():
                handle._cancelled = True
            self._live.clear()
            self._heap.clear()
            self._cond.notify_all()
        logger.debug("cleanup scheduler stop requested prefix=%s", self._thread_name_prefix)

    # ------------------------------------------------------------------ #
    # Internal
    # ------------------------------------------------------------------ #
    def _start_threads(self) -> None:
        if self._threads:
            return
        for idx in range(self._workers):
            thread = threading.Thread(
                target=self._worker_loop,
                name=f"{self._thread_name_prefix}-{idx}",
                daemon=True,
            )
            thread.start()
            self._threads.append(thread)
        logger.debug("cleanup scheduler threads started workers=%s", self._workers)

    def _next_due(self) -> Optional[ScheduledHandle]:
        with self._cond:
            while not self._stop.is_set():
                if not self._heap:
                    self._cond.wait(timeout=0.5)
                    continue
                planned, _, candidate = self._heap[0]
                if candidate._cancelled:
                    heapq.heappop(self._heap)
                    continue
                delay = planned - self._time_fn()
                if delay > 0:
                    self._cond.wait(timeout=min(delay, 0.5))
                    continue
                heapq.heappop(self._heap)
                return candidate
        return None

    def _worker_loop(self) -> None:
        while not self._stop.is_set():
            handle = self._next_due()
            if handle is None:
                break
            try:
                handle.task()
            except Exception:
                logger.warning("scheduled task failed task=%s", handle.name, exc_info=True)
            self._reschedule(handle)

    def _reschedule(self, handle: ScheduledHandle) -> None:
        with self._cond:
            if handle._cancelled or self._stop.is_set():
                return
            next_run = handle.next_run + handle.period
            now = self._time_fn()
            if next_run < now:
                next_run = now
            handle.next_run = next_run
            heapq.heappush(self._heap, (next_run, next(self._seq), handle))
            self._cond.notify()


_default_scheduler: Optional[CleanupScheduler] = None
_default_lock = threading.Lock()


def get_default_scheduler() -> CleanupScheduler:
    """Process-wide scheduler shared by caches that do not bring their own."""
    global _default_scheduler
    scheduler = _default_scheduler
    if scheduler is not None:
        return scheduler
    with _default_lock:
        if _default_scheduler is None:
            _default_scheduler = CleanupScheduler()
        return _default_scheduler


_shared_schedulers: dict[tuple[int, str], CleanupScheduler] = {}


def get_shared_scheduler(
    workers: int = 1, thread_name_prefix: str = DEFAULT_THREAD_NAME_PREFIX
) -> CleanupScheduler:
    """Scheduler shared by every cache configured with the same pool shape."""
    if workers == 1 and thread_name_prefix == DEFAULT_THREAD_NAME_PREFIX:
        return get_default_scheduler()
    key = (workers, thread_name_prefix)
    with _default_lock:
        scheduler = _shared_schedulers.get(key)
        if scheduler is None:
            scheduler = CleanupScheduler(workers=workers, thread_name_prefix=thread_name_prefix)
            _shared_schedulers[key] = scheduler
        return scheduler
