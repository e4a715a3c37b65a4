"""Dataclasses for alert rules, metric snapshots and alert records."""
import random
import string
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from models.enums import Condition, Severity

_ID_ALPHABET = string.ascii_lowercase + string.digits


def _generate_id(prefix):
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"


def new_rule_id():
    return _generate_id("rule")


def new_alert_id():
    return _generate_id("alert")


def ensure_utc(dt):
    """Return dt as an aware UTC datetime. Naive values are taken as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_timestamp(value):
    """Accept a datetime or ISO-8601 string and return an aware UTC datetime."""
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return ensure_utc(value)


@dataclass
class AlertRule:
    id: str = ""
    name: str = ""
    metric: str = ""
    condition: Condition = Condition.THRESHOLD
    value: float = 0.0
    time_window_minutes: int = 5
    enabled: bool = True

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "metric": self.metric,
            "condition": self.condition.value,
            "value": self.value,
            "timeWindowMinutes": self.time_window_minutes,
            "enabled": self.enabled,
        }

    @classmethod
    def from_dict(cls, d):
        return cls(
            id=d["id"],
            name=d["name"],
            metric=d["metric"],
            condition=Condition(d["condition"]),
            value=d["value"],
            time_window_minutes=d.get("timeWindowMinutes", 5),
            enabled=d.get("enabled", True),
        )


@dataclass(frozen=True)
class MetricSnapshot:
    metric: str
    value: float
    timestamp: datetime

    def to_dict(self):
        return {"value": self.value, "timestamp": self.timestamp.isoformat()}

    @classmethod
    def from_dict(cls, metric, d):
        return cls(metric=metric, value=d["value"], timestamp=parse_timestamp(d["timestamp"]))


@dataclass
class AlertRecord:
    id: str = field(default_factory=new_alert_id)
    rule_id: str = ""
    rule_name: str = ""
    metric: str = ""
    metric_value: float = 0.0
    baseline: Optional[float] = None
    severity: Severity = Severity.LOW
    message: str = ""
    triggered_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    acknowledged: bool = False

    def to_dict(self):
        return {
            "id": self.id,
            "ruleId": self.rule_id,
            "ruleName": self.rule_name,
            "metric": self.metric,
            "metricValue": self.metric_value,
            "baseline": self.baseline,
            "triggeredAt": self.triggered_at.isoformat(),
            "message": self.message,
            "severity": self.severity.value,
            "acknowledged": self.acknowledged,
        }

    @classmethod
    def from_dict(cls, d):
        """Rebuild a record from its stored JSON form."""
        return cls(
            id=d["id"],
            rule_id=d["ruleId"],
            rule_name=d.get("ruleName", ""),
            metric=d.get("metric", ""),
            metric_value=d.get("metricValue", 0.0),
            baseline=d.get("baseline"),
            severity=Severity(d["severity"]),
            message=d.get("message", ""),
            triggered_at=parse_timestamp(d["triggeredAt"]),
            acknowledged=bool(d.get("acknowledged", False)),
        )
