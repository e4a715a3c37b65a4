"""Configuration management."""
import os
import yaml
from pathlib import Path

_DEFAULT_CONFIG = Path(__file__).parent / "default_config.yaml"

ENV_OVERRIDES = {
    "METRIC_ALERTS_DB_PATH": ("storage", "path"),
    "METRIC_ALERTS_RETENTION_HOURS": ("alerts", "retention_hours"),
    "METRIC_ALERTS_HISTORY_CAPACITY": ("alerts", "history_capacity"),
    "METRIC_ALERTS_LOG_LEVEL": ("logging", "level"),
}


def load_config(path=None):
    """Load config from YAML, merging defaults with optional overrides."""
    with open(_DEFAULT_CONFIG) as f:
        config = yaml.safe_load(f)

    if path and Path(path).exists():
        with open(path) as f:
            overrides = yaml.safe_load(f) or {}
        config = _deep_merge(config, overrides)

    for env_key, config_path in ENV_OVERRIDES.items():
        val = os.environ.get(env_key)
        if val:
            d = config
            for k in config_path[:-1]:
                d = d.setdefault(k, {})
            try:
                d[config_path[-1]] = int(val)
            except ValueError:
                d[config_path[-1]] = val

    _validate_config(config)
    return config


def _deep_merge(base, override):
    """Recursively merge override into base dict."""
    result = base.copy()
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _validate_config(config):
    """Basic config validation."""
    required_sections = ["storage", "alerts", "channels", "logging"]
    for section in required_sections:
        if section not in config:
            raise ValueError(f"Missing required config section: {section}")

    if not config["storage"].get("path"):
        raise ValueError("storage.path must be set")
    for key in ("retention_hours", "history_capacity"):
        val = config["alerts"].get(key)
        if not isinstance(val, (int, float)) or isinstance(val, bool) or val <= 0:
            raise ValueError(f"alerts.{key} must be a positive number")
    if not isinstance(config["alerts"]["history_capacity"], int):
        raise ValueError("alerts.history_capacity must be an integer")
