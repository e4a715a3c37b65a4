"""Alert system module."""
from alerts.errors import AlertsError, ValidationError, NotFoundError, StorageError
from alerts.snapshots import SnapshotStore
from alerts.rules_registry import RuleRegistry
from alerts.evaluator import Evaluation, evaluate_rule
from alerts.history import AlertHistory
from alerts.monitor import AlertMonitor
from alerts.channels import ConsoleChannel, FileChannel
