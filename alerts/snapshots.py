"""Time-bounded per-metric snapshot store."""
import bisect
import logging
import math
import threading
from datetime import datetime, timedelta, timezone

from alerts.errors import StorageError, ValidationError
from models.alerts import MetricSnapshot, ensure_utc

logger = logging.getLogger("metricalerts.alerts.snapshots")

DEFAULT_RETENTION_HOURS = 24


def _check_value(value):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"Metric value must be a number, got {value!r}")
    if not math.isfinite(value):
        raise ValidationError(f"Metric value must be finite, got {value!r}")
    return float(value)


class SnapshotStore:
    """Ordered window of recent observations per metric.

    Snapshots are kept in ascending timestamp order. Eviction is lazy: each
    record() first drops that metric's snapshots older than the retention
    horizon, measured back from the newer of the recorded timestamp and the
    newest snapshot already held. A late observation that falls outside the
    horizon is not stored.

    If a storage backend is given, all series are rewritten under one key
    after each record so comparison baselines survive a restart. Snapshot
    persistence failures are logged and do not fail the recording.
    """

    def __init__(self, retention_hours=DEFAULT_RETENTION_HOURS, storage=None,
                 storage_key="metric_snapshots"):
        if retention_hours <= 0:
            raise ValueError("retention_hours must be positive")
        self.retention = timedelta(hours=retention_hours)
        self.storage = storage
        self.storage_key = storage_key
        self._series = {}
        self._times = {}
        self._lock = threading.Lock()
        if storage is not None:
            self._load()

    def record(self, metric, value, timestamp=None):
        """Append an observation, evicting expired ones for the same metric first."""
        value = _check_value(value)
        ts = ensure_utc(timestamp) if timestamp is not None else datetime.now(timezone.utc)
        snapshot = MetricSnapshot(metric=metric, value=value, timestamp=ts)

        with self._lock:
            series = self._series.setdefault(metric, [])
            times = self._times.setdefault(metric, [])

            newest = max(ts, times[-1]) if times else ts
            cutoff = newest - self.retention
            expired = bisect.bisect_left(times, cutoff)
            if expired:
                del series[:expired]
                del times[:expired]
                logger.debug(f"Evicted {expired} snapshot(s) for {metric}")

            if ts < cutoff:
                logger.debug(f"Dropped {metric} snapshot at {ts.isoformat()}: outside retention")
            else:
                # Equal timestamps keep insertion order, so the newest sorts last
                idx = bisect.bisect_right(times, ts)
                series.insert(idx, snapshot)
                times.insert(idx, ts)

            if self.storage is not None:
                self._save()
        return snapshot

    def latest_timestamp(self, metric):
        with self._lock:
            times = self._times.get(metric)
            return times[-1] if times else None

    def value_at(self, metric, target_time):
        """Value of the latest snapshot at or before target_time, or None."""
        target_time = ensure_utc(target_time)
        with self._lock:
            times = self._times.get(metric)
            if not times:
                return None
            idx = bisect.bisect_right(times, target_time)
            if idx == 0:
                return None
            return self._series[metric][idx - 1].value

    def latest_value(self, metric):
        with self._lock:
            series = self._series.get(metric)
            if not series:
                return None
            return series[-1].value

    def snapshots(self, metric):
        with self._lock:
            return list(self._series.get(metric, []))

    def metrics(self):
        with self._lock:
            return [m for m, series in self._series.items() if series]

    def clear(self, metric=None):
        with self._lock:
            if metric is None:
                self._series.clear()
                self._times.clear()
            else:
                self._series.pop(metric, None)
                self._times.pop(metric, None)
            if self.storage is not None:
                self._save()

    def _load(self):
        try:
            data = self.storage.get_json(self.storage_key, {}) or {}
            for metric, raw in data.items():
                series = sorted(
                    (MetricSnapshot.from_dict(metric, d) for d in raw),
                    key=lambda s: s.timestamp,
                )
                self._series[metric] = series
                self._times[metric] = [s.timestamp for s in series]
        except (StorageError, KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Could not load metric snapshots, starting empty: {e}")
            self._series.clear()
            self._times.clear()
            return
        logger.info(f"Loaded snapshots for {len(self._series)} metric(s)")

    def _save(self):
        data = {
            metric: [s.to_dict() for s in series]
            for metric, series in self._series.items()
        }
        try:
            self.storage.set_json(self.storage_key, data)
        except StorageError as e:
            logger.warning(f"Failed to persist metric snapshots: {e}")
