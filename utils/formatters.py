"""Formatting utilities for alert messages and display."""
from datetime import timezone


def format_number(value, decimals=2):
    """Format a metric value: integers stay bare, fractions get up to `decimals` places."""
    if value is None:
        return "N/A"
    value = float(value)
    if value.is_integer():
        return f"{int(value):,}"
    return f"{value:,.{decimals}f}".rstrip("0").rstrip(".")


def format_pct(value, decimals=2, with_color=False, signed=True):
    """Format percentage, with sign by default. Optionally include rich color markup."""
    if value is None:
        return "N/A"
    value = float(value)
    sign = "+" if signed and value >= 0 else ""
    formatted = f"{sign}{value:.{decimals}f}%"
    if with_color:
        color = "red" if value >= 0 else "green"
        return f"[{color}]{formatted}[/{color}]"
    return formatted


def format_timestamp(ts):
    """Format a datetime to human-readable string."""
    if ts is None:
        return "N/A"
    if isinstance(ts, str):
        return ts
    if ts.tzinfo is not None:
        ts = ts.astimezone(timezone.utc)
    return ts.strftime("%Y-%m-%d %H:%M UTC")
