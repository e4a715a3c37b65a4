"""Durable CRUD store for alert rules."""
import logging
import math
import threading
from dataclasses import replace

from alerts.errors import NotFoundError, StorageError, ValidationError
from models.alerts import AlertRule, new_rule_id
from models.enums import Condition

logger = logging.getLogger("metricalerts.alerts.rules")

RULE_FIELDS = ("name", "metric", "condition", "value", "time_window_minutes", "enabled")

# Accept the stored/wire spelling as well as the Python one
_FIELD_ALIASES = {"timeWindowMinutes": "time_window_minutes", "timeWindow": "time_window_minutes"}


def _normalize_fields(fields, kwargs):
    merged = dict(fields or {})
    merged.update(kwargs)
    return {_FIELD_ALIASES.get(k, k): v for k, v in merged.items()}


def validate_rule_fields(fields):
    """Check every rule field and return a cleaned copy. Raises ValidationError."""
    unknown = set(fields) - set(RULE_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown rule field(s): {', '.join(sorted(unknown))}")
    missing = [f for f in ("name", "metric", "condition", "value") if f not in fields]
    if missing:
        raise ValidationError(f"Missing rule field(s): {', '.join(missing)}")

    name = fields["name"]
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Rule name must be a non-empty string")

    metric = fields["metric"]
    if not isinstance(metric, str) or not metric:
        raise ValidationError("Rule metric must be a non-empty string")

    try:
        condition = Condition(fields["condition"])
    except ValueError:
        valid = ", ".join(c.value for c in Condition)
        raise ValidationError(f"Invalid condition {fields['condition']!r} (expected one of: {valid})")

    value = fields["value"]
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise ValidationError(f"Rule value must be a finite number, got {value!r}")
    if value <= 0:
        raise ValidationError(f"Rule value must be greater than 0, got {value}")

    window = fields.get("time_window_minutes", 5)
    if isinstance(window, float) and window.is_integer():
        window = int(window)
    if isinstance(window, bool) or not isinstance(window, int):
        raise ValidationError(f"time_window_minutes must be an integer, got {window!r}")
    if window <= 0:
        raise ValidationError(f"time_window_minutes must be greater than 0, got {window}")

    enabled = fields.get("enabled", True)
    if not isinstance(enabled, bool):
        raise ValidationError(f"enabled must be a boolean, got {enabled!r}")

    return {
        "name": name,
        "metric": metric,
        "condition": condition,
        "value": value,
        "time_window_minutes": window,
        "enabled": enabled,
    }


class RuleRegistry:
    """Rules keyed by id, rewritten to storage as one JSON list on every mutation.

    A mutation is applied in memory only after the storage write succeeds, so
    a StorageError leaves the registry exactly as it was.
    """

    def __init__(self, storage, storage_key="alert_rules"):
        self.storage = storage
        self.storage_key = storage_key
        self._rules = {}
        self._lock = threading.RLock()
        self.load()

    def load(self):
        raw_rules = self.storage.get_json(self.storage_key, []) or []
        rules = {}
        for r in raw_rules:
            try:
                rule = AlertRule.from_dict(r)
                validate_rule_fields({f: getattr(rule, f) for f in RULE_FIELDS})
            except (KeyError, TypeError, ValueError) as e:
                raise StorageError(f"Corrupt rule in {self.storage_key}: {e}") from e
            rules[rule.id] = rule
        with self._lock:
            self._rules = rules
        logger.info(f"Loaded {len(rules)} alert rule(s)")

    def _persist(self, rules):
        self.storage.set_json(self.storage_key, [r.to_dict() for r in rules.values()])

    def register_rule(self, fields=None, **kwargs):
        """Validate and store a new rule under a freshly generated id."""
        fields = _normalize_fields(fields, kwargs)
        fields.pop("id", None)
        cleaned = validate_rule_fields(fields)
        with self._lock:
            rule = AlertRule(id=new_rule_id(), **cleaned)
            while rule.id in self._rules:
                rule.id = new_rule_id()
            updated = dict(self._rules)
            updated[rule.id] = rule
            self._persist(updated)
            self._rules = updated
        logger.info(f"Registered rule {rule.id} ({rule.name})")
        return replace(rule)

    def update_rule(self, rule_id, patch=None, **kwargs):
        """Merge patch into an existing rule, re-validate and store it."""
        patch = _normalize_fields(patch, kwargs)
        if "id" in patch:
            if patch["id"] != rule_id:
                raise ValidationError("Rule id is immutable")
            del patch["id"]
        with self._lock:
            existing = self._rules.get(rule_id)
            if existing is None:
                raise NotFoundError(f"Alert rule with ID {rule_id} not found")
            merged = {f: getattr(existing, f) for f in RULE_FIELDS}
            merged.update(patch)
            rule = AlertRule(id=rule_id, **validate_rule_fields(merged))
            updated = dict(self._rules)
            updated[rule_id] = rule
            self._persist(updated)
            self._rules = updated
        logger.info(f"Updated rule {rule_id}")
        return replace(rule)

    def set_enabled(self, rule_id, enabled):
        return self.update_rule(rule_id, enabled=enabled)

    def delete_rule(self, rule_id):
        """Remove a rule. Unknown ids are ignored."""
        with self._lock:
            if rule_id not in self._rules:
                logger.debug(f"delete_rule: {rule_id} not present, nothing to do")
                return
            updated = dict(self._rules)
            del updated[rule_id]
            self._persist(updated)
            self._rules = updated
        logger.info(f"Deleted rule {rule_id}")

    def get_rule(self, rule_id):
        with self._lock:
            rule = self._rules.get(rule_id)
            return replace(rule) if rule else None

    def list_rules(self):
        with self._lock:
            return [replace(r) for r in self._rules.values()]

    def get_enabled_rules(self, metric=None):
        with self._lock:
            return [
                replace(r) for r in self._rules.values()
                if r.enabled and (metric is None or r.metric == metric)
            ]
