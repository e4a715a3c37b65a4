"""Utility modules for Metric Alerts."""
from utils.logger import setup_logging
from utils.formatters import format_number, format_pct, format_timestamp
