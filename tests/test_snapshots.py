"""Tests for the time-bounded snapshot store."""
import pytest
from datetime import datetime, timedelta, timezone

from alerts.errors import ValidationError
from alerts.snapshots import SnapshotStore


def test_empty_store_returns_none(snapshots, t0):
    assert snapshots.latest_value("requests") is None
    assert snapshots.value_at("requests", t0) is None
    assert snapshots.metrics() == []


def test_value_at_no_prior_snapshot(snapshots, t0):
    """A lookup before the first observation is 'not found', never zero."""
    snapshots.record("requests", 0, t0)
    assert snapshots.value_at("requests", t0 - timedelta(minutes=10)) is None
    assert snapshots.value_at("requests", t0) == 0


def test_value_at_picks_latest_at_or_before(snapshots, t0):
    snapshots.record("requests", 1, t0)
    snapshots.record("requests", 2, t0 + timedelta(minutes=5))
    snapshots.record("requests", 3, t0 + timedelta(minutes=10))

    assert snapshots.value_at("requests", t0 + timedelta(minutes=4)) == 1
    assert snapshots.value_at("requests", t0 + timedelta(minutes=5)) == 2
    assert snapshots.value_at("requests", t0 + timedelta(minutes=9, seconds=59)) == 2
    assert snapshots.value_at("requests", t0 + timedelta(hours=1)) == 3
    assert snapshots.latest_value("requests") == 3


def test_same_timestamp_last_recorded_wins(snapshots, t0):
    snapshots.record("requests", 1, t0)
    snapshots.record("requests", 2, t0)
    snapshots.record("requests", 3, t0)
    assert snapshots.value_at("requests", t0) == 3
    assert snapshots.latest_value("requests") == 3


def test_out_of_order_records_kept_sorted(snapshots, t0):
    snapshots.record("requests", 10, t0 + timedelta(minutes=10))
    snapshots.record("requests", 5, t0 + timedelta(minutes=5))
    times = [s.timestamp for s in snapshots.snapshots("requests")]
    assert times == sorted(times)
    assert snapshots.latest_value("requests") == 10
    assert snapshots.value_at("requests", t0 + timedelta(minutes=6)) == 5


def test_late_record_outside_horizon_is_dropped(snapshots, t0):
    snapshots.record("requests", 2, t0 + timedelta(hours=25))
    snapshots.record("requests", 1, t0)
    assert [s.value for s in snapshots.snapshots("requests")] == [2]
    assert snapshots.value_at("requests", t0) is None


def test_late_record_evicts_against_newest(snapshots, t0):
    snapshots.record("requests", 1, t0)
    snapshots.record("requests", 3, t0 + timedelta(hours=30))
    snapshots.record("requests", 2, t0 + timedelta(hours=10))
    times = [s.timestamp for s in snapshots.snapshots("requests")]
    assert times == [t0 + timedelta(hours=10), t0 + timedelta(hours=30)]
    assert times[-1] - times[0] <= timedelta(hours=24)
    assert snapshots.latest_timestamp("requests") == t0 + timedelta(hours=30)


def test_metrics_are_independent(snapshots, t0):
    snapshots.record("status4xx", 4, t0)
    snapshots.record("status5xx", 5, t0)
    assert snapshots.latest_value("status4xx") == 4
    assert snapshots.latest_value("status5xx") == 5
    assert sorted(snapshots.metrics()) == ["status4xx", "status5xx"]


def test_eviction_horizon(snapshots, t0):
    snapshots.record("requests", 1, t0)
    snapshots.record("requests", 2, t0 + timedelta(hours=12))
    assert snapshots.value_at("requests", t0) == 1

    snapshots.record("requests", 3, t0 + timedelta(hours=24, seconds=1))
    assert snapshots.value_at("requests", t0) is None
    assert [s.value for s in snapshots.snapshots("requests")] == [2, 3]


def test_snapshot_exactly_at_horizon_is_kept(snapshots, t0):
    snapshots.record("requests", 1, t0)
    snapshots.record("requests", 2, t0 + timedelta(hours=24))
    assert snapshots.value_at("requests", t0) == 1


def test_eviction_only_touches_recorded_metric(snapshots, t0):
    snapshots.record("a", 1, t0)
    snapshots.record("b", 1, t0 + timedelta(days=2))
    assert snapshots.value_at("a", t0) == 1


def test_custom_retention(t0):
    store = SnapshotStore(retention_hours=1)
    store.record("requests", 1, t0)
    store.record("requests", 2, t0 + timedelta(minutes=61))
    assert store.value_at("requests", t0) is None


def test_invalid_retention():
    with pytest.raises(ValueError):
        SnapshotStore(retention_hours=0)


@pytest.mark.parametrize("bad", ["12", None, True, float("nan"), float("inf")])
def test_rejects_non_numeric_values(snapshots, t0, bad):
    with pytest.raises(ValidationError):
        snapshots.record("requests", bad, t0)
    assert snapshots.latest_value("requests") is None


def test_naive_timestamps_are_utc(snapshots):
    snapshots.record("requests", 7, datetime(2024, 6, 1, 12, 0))
    aware = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
    assert snapshots.value_at("requests", aware) == 7


def test_snapshots_returns_copy(snapshots, t0):
    snapshots.record("requests", 1, t0)
    copy = snapshots.snapshots("requests")
    copy.clear()
    assert snapshots.latest_value("requests") == 1


def test_clear(snapshots, t0):
    snapshots.record("a", 1, t0)
    snapshots.record("b", 2, t0)
    snapshots.clear("a")
    assert snapshots.latest_value("a") is None
    assert snapshots.latest_value("b") == 2
    snapshots.clear()
    assert snapshots.metrics() == []


# ── Persistence ─────────────────────────────────────────

def test_snapshots_survive_restart(temp_store, t0):
    store = SnapshotStore(storage=temp_store)
    store.record("status5xx", 10, t0)
    store.record("status5xx", 16, t0 + timedelta(minutes=5))

    reloaded = SnapshotStore(storage=temp_store)
    assert reloaded.value_at("status5xx", t0 + timedelta(minutes=1)) == 10
    assert reloaded.latest_value("status5xx") == 16


def test_corrupt_snapshot_document_starts_empty(temp_store, t0):
    temp_store.set("metric_snapshots", "{not json")
    store = SnapshotStore(storage=temp_store)
    assert store.metrics() == []
    store.record("requests", 1, t0)
    assert store.latest_value("requests") == 1


def test_snapshot_write_failure_does_not_fail_record(temp_store, t0, monkeypatch):
    from alerts.errors import StorageError

    store = SnapshotStore(storage=temp_store)

    def boom(key, data):
        raise StorageError("disk full")

    monkeypatch.setattr(temp_store, "set_json", boom)
    store.record("requests", 5, t0)
    assert store.latest_value("requests") == 5
