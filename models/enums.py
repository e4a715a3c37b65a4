"""Enums for rule conditions and alert severity."""
from enum import Enum


class Condition(str, Enum):
    INCREASE = "increase"
    DECREASE = "decrease"
    THRESHOLD = "threshold"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class StatusMetric(str, Enum):
    """HTTP status-class counters reported by the analytics API."""
    STATUS_2XX = "status2xx"
    STATUS_3XX = "status3xx"
    STATUS_4XX = "status4xx"
    STATUS_5XX = "status5xx"
