"""Data models."""
from models.enums import Condition, Severity, StatusMetric
from models.alerts import AlertRule, MetricSnapshot, AlertRecord
