"""Trigger evaluation for alert rules.

Everything here is pure: a rule, something that can look up snapshot values
(``latest_value(metric)`` and ``value_at(metric, when)``) and the evaluation
time go in, an Evaluation comes out. No storage, no clock, no side effects.
"""
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from models.enums import Condition, Severity
from utils.formatters import format_number, format_pct

# A change from a zero baseline is reported as a 100% increase
ZERO_BASELINE_CHANGE_PCT = 100.0

HIGH_EXCESS_RATIO = 1.0
# Strictly greater: a 60% change against a 50% rule (exactly 20% over) is low
MEDIUM_EXCESS_RATIO = 0.2

# Decimal places kept when comparing percentages and ratios
PRECISION = 9


@dataclass(frozen=True)
class Evaluation:
    triggered: bool
    severity: Optional[Severity] = None
    message: Optional[str] = None
    current: Optional[float] = None
    baseline: Optional[float] = None
    change_pct: Optional[float] = None


NOT_TRIGGERED = Evaluation(triggered=False)


def percent_change(current, baseline):
    """Signed change from baseline to current, in percent."""
    if baseline == 0:
        return ZERO_BASELINE_CHANGE_PCT if current > 0 else 0.0
    return (current - baseline) / baseline * 100


def classify_severity(observed, rule_value):
    """Map how far observed overshoots rule_value onto a severity level.

    The excess is measured as a fraction of the rule's own value: twice the
    configured value or more is high, anything beyond 20% over it is medium.
    """
    excess = round((observed - rule_value) / rule_value, PRECISION)
    if excess >= HIGH_EXCESS_RATIO:
        return Severity.HIGH
    if excess > MEDIUM_EXCESS_RATIO:
        return Severity.MEDIUM
    return Severity.LOW


def _threshold_message(rule, current):
    return (f"{rule.name}: {rule.metric} reached threshold {format_number(rule.value)} "
            f"(current: {format_number(current)})")


def _change_message(rule, current, baseline, change_pct):
    direction = "increased" if rule.condition is Condition.INCREASE else "decreased"
    return (f"{rule.name}: {rule.metric} {direction} {format_pct(abs(change_pct), 1, signed=False)} "
            f"in {rule.time_window_minutes} min "
            f"(from {format_number(baseline)} to {format_number(current)}; "
            f"threshold: {format_pct(rule.value, 1, signed=False)})")


def evaluate_rule(rule, lookup, now):
    """Decide whether rule's condition holds at time now."""
    if not rule.enabled:
        return NOT_TRIGGERED

    current = lookup.latest_value(rule.metric)
    if current is None:
        return NOT_TRIGGERED

    if rule.condition is Condition.THRESHOLD:
        if current < rule.value:
            return NOT_TRIGGERED
        return Evaluation(
            triggered=True,
            severity=classify_severity(current, rule.value),
            message=_threshold_message(rule, current),
            current=current,
        )

    baseline = lookup.value_at(rule.metric, now - timedelta(minutes=rule.time_window_minutes))
    if baseline is None:
        return NOT_TRIGGERED

    if rule.condition is Condition.INCREASE:
        if baseline == 0:
            if current <= 0:
                return NOT_TRIGGERED
            change = ZERO_BASELINE_CHANGE_PCT
        else:
            change = round((current - baseline) / baseline * 100, PRECISION)
            if change < rule.value:
                return NOT_TRIGGERED
    elif rule.condition is Condition.DECREASE:
        if baseline <= 0:
            return NOT_TRIGGERED
        change = round((baseline - current) / baseline * 100, PRECISION)
        if change < rule.value:
            return NOT_TRIGGERED
    else:
        raise ValueError(f"Unsupported condition: {rule.condition!r}")

    signed_change = change if rule.condition is Condition.INCREASE else -change
    return Evaluation(
        triggered=True,
        severity=classify_severity(change, rule.value),
        message=_change_message(rule, current, baseline, change),
        current=current,
        baseline=baseline,
        change_pct=signed_change,
    )
