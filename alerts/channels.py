"""Alert notification channels.

Each channel exposes ``send(alert)`` and is attached to a monitor with
``monitor.on_alert(channel.send)``.
"""
import json
import logging
from pathlib import Path
from typing import Protocol, runtime_checkable

from rich.markup import escape

from models.enums import Severity

logger = logging.getLogger("metricalerts.alerts.channels")

SEVERITY_RANK = {Severity.LOW: 0, Severity.MEDIUM: 1, Severity.HIGH: 2}


@runtime_checkable
class AlertChannel(Protocol):
    def send(self, alert) -> None: ...


class ConsoleChannel:
    """Print alerts to terminal with rich formatting."""

    severity_styles = {
        Severity.HIGH: "bold white on red",
        Severity.MEDIUM: "bold yellow",
        Severity.LOW: "bold blue",
    }

    def __init__(self, console=None, min_severity=Severity.LOW):
        if console is None:
            from rich.console import Console
            console = Console()
        self.console = console
        self.min_severity = Severity(min_severity)

    def send(self, alert):
        if SEVERITY_RANK[alert.severity] < SEVERITY_RANK[self.min_severity]:
            return
        sev = alert.severity.value
        style = self.severity_styles.get(alert.severity, "")
        self.console.print(f"[{style}] [{sev.upper()}] {escape(alert.rule_name)}: {escape(alert.message)}[/]")


class FileChannel:
    """Append alerts to a JSON lines log file."""

    def __init__(self, log_path="data/alerts.jsonl"):
        self.log_path = log_path

    def send(self, alert):
        try:
            Path(self.log_path).parent.mkdir(parents=True, exist_ok=True)
            with open(self.log_path, "a") as f:
                f.write(json.dumps(alert.to_dict()) + "\n")
        except OSError as e:
            logger.warning(f"Failed to write alert to file: {e}")
