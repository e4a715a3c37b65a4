"""Shared test fixtures."""
import os
import sys
import pytest
import tempfile

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from datetime import datetime, timezone
from models.storage import KeyValueStore
from alerts.snapshots import SnapshotStore
from alerts.rules_registry import RuleRegistry
from alerts.history import AlertHistory
from alerts.monitor import AlertMonitor


@pytest.fixture
def temp_store():
    """Create a temporary key-value store for testing."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name
    store = KeyValueStore(db_path)
    store.connect()
    yield store
    store.close()
    for suffix in ("", "-wal", "-shm"):
        if os.path.exists(db_path + suffix):
            os.unlink(db_path + suffix)


@pytest.fixture
def t0():
    """Fixed base time so window arithmetic is deterministic."""
    return datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def snapshots():
    return SnapshotStore()


@pytest.fixture
def registry(temp_store):
    return RuleRegistry(temp_store)


@pytest.fixture
def history(temp_store):
    return AlertHistory(temp_store)


@pytest.fixture
def monitor(registry, snapshots, history):
    return AlertMonitor(registry, snapshots, history)


@pytest.fixture
def spike_rule_fields():
    return {
        "name": "5xx spike",
        "metric": "status5xx",
        "condition": "increase",
        "value": 50,
        "time_window_minutes": 5,
        "enabled": True,
    }
