"""Bounded, most-recent-first alert log."""
import logging
import threading
from dataclasses import replace

from alerts.errors import StorageError
from models.alerts import AlertRecord

logger = logging.getLogger("metricalerts.alerts.history")

DEFAULT_CAPACITY = 100


class AlertHistory:
    """Alert log persisted as one JSON list, newest first, capped at `capacity`.

    Writes go to storage before the in-memory list is swapped, so a failed
    write leaves the log untouched. Callers only ever get copies.
    """

    def __init__(self, storage, storage_key="alert_history", capacity=DEFAULT_CAPACITY):
        if isinstance(capacity, bool) or not isinstance(capacity, int):
            raise ValueError(f"capacity must be an integer, got {capacity!r}")
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.storage = storage
        self.storage_key = storage_key
        self.capacity = capacity
        self._alerts = []
        self._lock = threading.RLock()
        self.load()

    def load(self):
        raw = self.storage.get_json(self.storage_key, []) or []
        try:
            alerts = [AlertRecord.from_dict(a) for a in raw]
        except (KeyError, TypeError, ValueError) as e:
            raise StorageError(f"Corrupt alert history in {self.storage_key}: {e}") from e
        with self._lock:
            self._alerts = alerts[:self.capacity]
        logger.info(f"Loaded {len(self._alerts)} alert(s) from history")

    def _persist(self, alerts):
        self.storage.set_json(self.storage_key, [a.to_dict() for a in alerts])

    def append(self, alert):
        """Insert at the head; entries beyond capacity fall off the tail."""
        with self._lock:
            updated = [replace(alert)] + self._alerts
            dropped = len(updated) - self.capacity
            if dropped > 0:
                updated = updated[:self.capacity]
                logger.debug(f"History at capacity, dropped {dropped} oldest alert(s)")
            self._persist(updated)
            self._alerts = updated

    def list(self, limit=None):
        with self._lock:
            alerts = self._alerts if limit is None else self._alerts[:limit]
            return [replace(a) for a in alerts]

    def get(self, alert_id):
        with self._lock:
            for a in self._alerts:
                if a.id == alert_id:
                    return replace(a)
        return None

    def unacknowledged(self):
        with self._lock:
            return [replace(a) for a in self._alerts if not a.acknowledged]

    def acknowledge(self, alert_id):
        """Mark an alert acknowledged. Unknown or already acknowledged ids are a no-op."""
        with self._lock:
            for idx, a in enumerate(self._alerts):
                if a.id == alert_id:
                    break
            else:
                logger.debug(f"acknowledge: {alert_id} not in history")
                return
            if a.acknowledged:
                return
            updated = list(self._alerts)
            updated[idx] = replace(a, acknowledged=True)
            self._persist(updated)
            self._alerts = updated

    def clear(self):
        with self._lock:
            self._persist([])
            self._alerts = []
        logger.info("Alert history cleared")

    def __len__(self):
        with self._lock:
            return len(self._alerts)
