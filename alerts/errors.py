"""Exceptions raised by the alerting engine."""


class AlertsError(Exception):
    """Base class for alerting engine errors."""


class ValidationError(AlertsError, ValueError):
    """Rule fields violate the rule invariants."""


class NotFoundError(AlertsError, KeyError):
    """An operation referenced an unknown rule id."""

    def __str__(self):
        return str(self.args[0]) if self.args else ""


class StorageError(AlertsError):
    """Durable storage could not be read or written."""
