import logging

import pytest
from fastapi.testclient import TestClient

from expiring_cache.api import create_app
from expiring_cache.cache import ExpiringLimitedCache
from expiring_cache.status_service import CacheStatusService, get_status_service
from expiring_cache.trace import CacheEvent, CacheEventType, LoggingTraceSink, NullTraceSink, emit_safely


@pytest.fixture
def status_service():
    get_status_service.cache_clear()
    service = get_status_service()
    yield service
    get_status_service.cache_clear()


def test_status_service_counts_events():
    service = CacheStatusService()

    service.emit(CacheEvent(cache="c", type=CacheEventType.SWEEP_STARTED))
    service.emit(CacheEvent(cache="c", type=CacheEventType.HIT, key="k"))
    service.emit(CacheEvent(cache="c", type=CacheEventType.MISS, key="x"))
    service.emit(CacheEvent(cache="c", type=CacheEventType.SWEEP_COMPLETED, cleared=3, duration_ms=1.5))

    summary = service.get_cache("c")
    assert summary["hits"] == 1
    assert summary["misses"] == 1
    assert summary["sweeps"] == 1
    assert summary["cleared_total"] == 3
    assert summary["last_sweep_ms"] == 1.5
    assert summary["sweep_active"] is True

    service.emit(CacheEvent(cache="c", type=CacheEventType.SWEEP_STOPPED))
    assert service.get_cache("c")["sweep_active"] is False
    assert service.get_cache("unknown") is None


def test_status_service_event_history_is_bounded():
    service = CacheStatusService(max_events=3)
    for i in range(5):
        service.emit(CacheEvent(cache="c", type=CacheEventType.MISS, key=i))

    events = service.get_events("c")
    assert [item["id"] for item in events["items"]] == [3, 4, 5]
    assert events["cursor"] == 5

    newer = service.get_events("c", cursor=4)
    assert [item["key"] for item in newer["items"]] == ["4"]

    service.clear("c")
    assert service.list_caches() == []
    assert service.get_events("c") == {"items": [], "cursor": 0}


def test_emit_safely_tolerates_missing_and_broken_sinks():
    class Broken:
        def emit(self, event):
            raise RuntimeError("down")

    event = CacheEvent(cache="c", type=CacheEventType.HIT)

    emit_safely(None, event)
    emit_safely(NullTraceSink(), event)
    emit_safely(Broken(), event)


def test_logging_trace_sink(caplog):
    sink = LoggingTraceSink(logging.getLogger("test.trace"))

    with caplog.at_level(logging.DEBUG, logger="test.trace"):
        sink.emit(CacheEvent(cache="c", type=CacheEventType.EXPIRED, key="k"))
        sink.emit(CacheEvent(cache="c", type=CacheEventType.SWEEP_COMPLETED, cleared=2, duration_ms=0.5))

    messages = [record.getMessage() for record in caplog.records]
    assert messages == [
        "cache=c event=expired key='k'",
        "cache=c event=sweep_completed cleared=2 took=0.5ms",
    ]


def test_status_api(status_service, manual_scheduler, clock):
    cache = ExpiringLimitedCache(
        "users",
        expiration_seconds=10,
        max_size=10,
        scheduler=manual_scheduler,
        trace_sink=status_service,
        time_fn=clock,
    )
    cache.put("a", 1)
    cache.get("a")
    cache.get("b")

    client = TestClient(create_app())

    resp = client.get("/api/cache/status")
    assert resp.status_code == 200
    caches = resp.json()["caches"]
    assert [c["name"] for c in caches] == ["users"]
    assert caches[0]["hits"] == 1
    assert caches[0]["misses"] == 1
    assert caches[0]["sweep_active"] is True

    resp = client.get("/api/cache/status/users/events", params={"limit": 2})
    assert resp.status_code == 200
    assert [item["type"] for item in resp.json()["items"]] == ["hit", "miss"]

    assert client.get("/api/cache/status/missing").status_code == 404

    resp = client.post("/api/cache/status/users/events/clear")
    assert resp.json() == {"ok": True}
    assert client.get("/api/cache/status/users/events").json()["items"] == []
    assert client.get("/api/cache/status/users").json()["name"] == "users"
