"""Alert monitor: wires metric ingestion to rule evaluation and alert history."""
import logging
import threading
from dataclasses import replace
from datetime import datetime, timedelta, timezone

from alerts.evaluator import evaluate_rule, percent_change
from alerts.metrics import DEFAULT_TRACKED_METRICS, extract_metric_value
from models.alerts import AlertRecord, ensure_utc
from models.enums import Condition

logger = logging.getLogger("metricalerts.alerts.monitor")


class AlertMonitor:
    """Evaluates enabled rules each time a metric value is ingested.

    The registry, snapshot store and history are injected and owned by this
    instance. Ingestion and every rule mutation made through the monitor run
    under one re-entrant lock. There is no cooldown: a rule whose condition
    still holds fires again on every ingestion.
    """

    def __init__(self, rules, snapshots, history, tracked_metrics=None):
        self.rules = rules
        self.snapshots = snapshots
        self.history = history
        self.tracked_metrics = list(tracked_metrics or DEFAULT_TRACKED_METRICS)
        self._handlers = []
        self._lock = threading.RLock()

    # --- Subscribers ---

    def on_alert(self, handler):
        """Register handler(alert); returns a callable that unregisters it."""
        with self._lock:
            self._handlers.append(handler)

        def unsubscribe():
            with self._lock:
                if handler in self._handlers:
                    self._handlers.remove(handler)

        return unsubscribe

    def _dispatch(self, alert):
        for handler in list(self._handlers):
            try:
                handler(alert)
            except Exception as e:
                logger.warning(f"Alert handler error: {e}")

    # --- Ingestion ---

    def ingest(self, metric, value, timestamp=None):
        """Record one observation and fire alerts for every enabled rule on that metric."""
        timestamp = ensure_utc(timestamp) if timestamp is not None else datetime.now(timezone.utc)
        triggered = []

        with self._lock:
            self.snapshots.record(metric, value, timestamp)
            # A late observation is evaluated as of the newest snapshot held
            now = max(timestamp, self.snapshots.latest_timestamp(metric) or timestamp)

            for rule in self.rules.get_enabled_rules(metric=metric):
                result = evaluate_rule(rule, self.snapshots, now)
                if not result.triggered:
                    continue

                alert = AlertRecord(
                    rule_id=rule.id,
                    rule_name=rule.name,
                    metric=rule.metric,
                    metric_value=result.current,
                    baseline=result.baseline,
                    severity=result.severity,
                    message=result.message,
                    triggered_at=now,
                )
                self.history.append(alert)
                logger.info(f"[{alert.severity.value}] {alert.message}")
                triggered.append(alert)
                self._dispatch(alert)

        return triggered

    def check_metrics(self, payload, timestamp=None):
        """Ingest every tracked metric found in an analytics payload."""
        timestamp = ensure_utc(timestamp) if timestamp is not None else datetime.now(timezone.utc)
        names = list(self.tracked_metrics)
        for rule in self.rules.list_rules():
            if rule.metric not in names:
                names.append(rule.metric)

        alerts = []
        for name in names:
            value = extract_metric_value(payload, name)
            if value is None:
                continue
            alerts.extend(self.ingest(name, value, timestamp))
        return alerts

    def preview_rules(self, now=None):
        """Evaluate ALL rules against stored snapshots without recording anything."""
        now = ensure_utc(now) if now is not None else datetime.now(timezone.utc)
        results = []
        with self._lock:
            for rule in self.rules.list_rules():
                current = self.snapshots.latest_value(rule.metric)
                baseline = None
                change = None
                if rule.condition is not Condition.THRESHOLD:
                    baseline = self.snapshots.value_at(
                        rule.metric, now - timedelta(minutes=rule.time_window_minutes))
                    if current is not None and baseline is not None:
                        change = percent_change(current, baseline)
                # Disabled rules are previewed as if enabled
                probe = rule if rule.enabled else replace(rule, enabled=True)
                result = evaluate_rule(probe, self.snapshots, now)
                results.append({
                    "rule_id": rule.id,
                    "name": rule.name,
                    "metric": rule.metric,
                    "condition": rule.condition.value,
                    "value": rule.value,
                    "current_value": current,
                    "baseline": baseline,
                    "change_pct": change,
                    "would_fire": result.triggered,
                    "severity": result.severity.value if result.severity else None,
                    "enabled": rule.enabled,
                })
        return results

    # --- Rule management ---

    def register_rule(self, fields=None, **kwargs):
        with self._lock:
            return self.rules.register_rule(fields, **kwargs)

    def update_rule(self, rule_id, patch=None, **kwargs):
        with self._lock:
            return self.rules.update_rule(rule_id, patch, **kwargs)

    def set_enabled(self, rule_id, enabled):
        with self._lock:
            return self.rules.set_enabled(rule_id, enabled)

    def delete_rule(self, rule_id):
        with self._lock:
            self.rules.delete_rule(rule_id)

    def list_rules(self):
        return self.rules.list_rules()

    def get_rule(self, rule_id):
        return self.rules.get_rule(rule_id)

    # --- History ---

    def alert_history(self, limit=None):
        return self.history.list(limit)

    def acknowledge(self, alert_id):
        with self._lock:
            self.history.acknowledge(alert_id)

    def clear_history(self):
        with self._lock:
            self.history.clear()

    def format_alert_summary(self, alerts):
        """Format alerts for display."""
        if not alerts:
            return "All clear - no alerts triggered."
        lines = []
        for a in alerts:
            icon = {"high": "!!!", "medium": "!!", "low": "i"}.get(a.severity.value, "?")
            lines.append(f"[{icon}] [{a.severity.value.upper()}] {a.message}")
        return "\n".join(lines)
