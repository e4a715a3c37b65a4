"""Pull numeric metric values out of analytics API payloads."""
import math

from models.enums import StatusMetric

DEFAULT_TRACKED_METRICS = [m.value for m in StatusMetric]


def extract_metric_value(payload, metric_name):
    """Look up metric_name in payload, walking dotted paths through nested dicts.

    Returns None when the path is missing or the value is not a finite number.
    """
    if not isinstance(payload, dict):
        return None
    if metric_name in payload:
        value = payload[metric_name]
    else:
        value = payload
        for part in metric_name.split("."):
            if isinstance(value, dict) and part in value:
                value = value[part]
            else:
                return None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return None
    return value
