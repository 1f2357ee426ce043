from types import SimpleNamespace

import pytest

from expiring_cache.cache import (
    CacheValue,
    NeverReclaim,
    ReclaimableHolder,
    ReclamationPolicy,
    RuntimeAdvised,
    build_policy,
)


class SwitchPolicy(ReclamationPolicy):
    def __init__(self) -> None:
        self.pressure = False

    def should_reclaim(self) -> bool:
        return self.pressure


def test_cache_value_expires_strictly_after_deadline():
    value = CacheValue("v", expires_at=10.0)

    assert value.is_expired(9.0) is False
    assert value.is_expired(10.0) is False
    assert value.is_expired(10.001) is True


def test_cache_value_requires_expiry():
    with pytest.raises(ValueError):
        CacheValue("v", expires_at=None)


def test_holder_reads_until_reclaimed():
    holder = ReclaimableHolder(CacheValue("v", 10.0), NeverReclaim())

    assert holder.try_read().value == "v"
    assert holder.reclaimed is False

    holder.reclaim()
    holder.reclaim()

    assert holder.try_read() is None
    assert holder.reclaimed is True
    # A cleared holder is not "expired": the two states are independent.
    assert holder.is_expired(100.0) is False


def test_holder_expired_but_present():
    holder = ReclaimableHolder(CacheValue("v", 10.0), NeverReclaim())

    assert holder.is_expired(11.0) is True
    assert holder.try_read().value == "v"


def test_reclamation_is_one_way():
    policy = SwitchPolicy()
    holder = ReclaimableHolder(CacheValue("v", 10.0), policy)

    policy.pressure = True
    assert holder.try_read() is None

    policy.pressure = False
    assert holder.try_read() is None
    assert holder.reclaimed is True


def test_runtime_advised_follows_memory_probe():
    readings = {"percent": 50.0}
    policy = RuntimeAdvised(
        threshold_percent=90.0,
        check_interval_seconds=0,
        memory_probe=lambda: SimpleNamespace(percent=readings["percent"]),
    )

    assert policy.should_reclaim() is False
    readings["percent"] = 90.0
    assert policy.should_reclaim() is True
    readings["percent"] = 20.0
    assert policy.should_reclaim() is False


def test_runtime_advised_reuses_probe_within_interval():
    t = {"now": 0.0}
    calls = []

    def probe():
        calls.append(t["now"])
        return SimpleNamespace(percent=95.0)

    policy = RuntimeAdvised(
        threshold_percent=90.0,
        check_interval_seconds=1.0,
        memory_probe=probe,
        time_fn=lambda: t["now"],
    )

    assert policy.should_reclaim() is True
    t["now"] = 0.5
    assert policy.should_reclaim() is True
    assert calls == [0.0]

    t["now"] = 1.5
    policy.should_reclaim()
    assert calls == [0.0, 1.5]


def test_runtime_advised_probe_failure_means_no_pressure():
    def probe():
        raise RuntimeError("probe unavailable")

    policy = RuntimeAdvised(check_interval_seconds=0, memory_probe=probe)

    assert policy.should_reclaim() is False


def test_runtime_advised_validates_threshold():
    with pytest.raises(ValueError):
        RuntimeAdvised(threshold_percent=0)
    with pytest.raises(ValueError):
        RuntimeAdvised(threshold_percent=101)


def test_build_policy_modes():
    assert isinstance(build_policy("never"), NeverReclaim)
    runtime = build_policy(" Runtime ", threshold_percent=75.0)
    assert isinstance(runtime, RuntimeAdvised)
    assert runtime.threshold_percent == 75.0

    with pytest.raises(ValueError):
        build_policy("sometimes")
