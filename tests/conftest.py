from __future__ import annotations

from typing import Callable, Optional

import pytest

from expiring_cache.scheduling import CleanupScheduler, RecurringScheduler, ScheduledHandle
from expiring_cache.trace import CacheEvent, TraceSink


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ManualScheduler(RecurringScheduler):
    """Scheduler stand-in whose tasks only run when the test says so."""

    def __init__(self) -> None:
        self.handles: list[ScheduledHandle] = []
        self.scheduled: list[dict] = []
        self.cancelled: list[ScheduledHandle] = []

    def schedule_recurring(
        self,
        task: Callable[[], None],
        *,
        initial_delay: float,
        period: float,
        name: Optional[str] = None,
    ) -> ScheduledHandle:
        handle = ScheduledHandle(
            task_id=len(self.handles) + 1,
            name=name or "manual",
            task=task,
            period=period,
            next_run=initial_delay,
        )
        self.handles.append(handle)
        self.scheduled.append({"name": name, "initial_delay": initial_delay, "period": period})
        return handle

    def cancel(self, handle: ScheduledHandle) -> bool:
        if handle._cancelled:
            return False
        handle._cancelled = True
        self.cancelled.append(handle)
        return True

    def pending_count(self) -> int:
        return sum(1 for handle in self.handles if not handle.cancelled)

    def run_pending(self) -> int:
        ran = 0
        for handle in list(self.handles):
            if handle.cancelled:
                continue
            handle.task()
            ran += 1
        return ran


class RecordingSink(TraceSink):
    def __init__(self) -> None:
        self.events: list[CacheEvent] = []

    def emit(self, event: CacheEvent) -> None:
        self.events.append(event)

    @property
    def types(self) -> list[str]:
        return [event.type.value for event in self.events]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def manual_scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def recording_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def cleanup_scheduler():
    scheduler = CleanupScheduler(workers=1, thread_name_prefix="test-cleanup")
    yield scheduler
    scheduler.shutdown()
