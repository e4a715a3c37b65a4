#!/usr/bin/env python3
"""Metric Alerts - CLI Entry Point."""
import sys
import json
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from __version__ import __version__

console = Console()


def _init_components(config_path=None, verbose=False):
    """Lazy initialization of all components."""
    from utils.logger import setup_logging
    from config import load_config
    from models.storage import KeyValueStore
    from alerts import AlertHistory, AlertMonitor, RuleRegistry, SnapshotStore
    from alerts.channels import ConsoleChannel, FileChannel

    config = load_config(config_path)
    log_cfg = config.get("logging", {})
    setup_logging("DEBUG" if verbose else log_cfg.get("level", "INFO"), log_cfg.get("file"))

    storage_cfg = config["storage"]
    alerts_cfg = config["alerts"]

    store = KeyValueStore(storage_cfg["path"])
    store.connect()

    rules = RuleRegistry(store, storage_key=storage_cfg.get("rules_key", "alert_rules"))
    snapshots = SnapshotStore(
        retention_hours=alerts_cfg["retention_hours"],
        storage=store if storage_cfg.get("persist_snapshots", True) else None,
        storage_key=storage_cfg.get("snapshots_key", "metric_snapshots"),
    )
    history = AlertHistory(
        store,
        storage_key=storage_cfg.get("history_key", "alert_history"),
        capacity=alerts_cfg["history_capacity"],
    )
    monitor = AlertMonitor(rules, snapshots, history,
                           tracked_metrics=alerts_cfg.get("tracked_metrics"))

    channels_cfg = config.get("channels", {})
    if channels_cfg.get("file_log_path"):
        monitor.on_alert(FileChannel(channels_cfg["file_log_path"]).send)
    if channels_cfg.get("console", True):
        monitor.on_alert(ConsoleChannel(
            console=console,
            min_severity=channels_cfg.get("console_min_severity", "low"),
        ).send)

    return {"config": config, "store": store, "monitor": monitor}


@click.group()
@click.option("--config", "config_path", default=None, help="Path to config YAML")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.version_option(__version__, prog_name="metric-alerts")
@click.pass_context
def cli(ctx, config_path, verbose):
    """Metric Alerts - rule-based alerting on time-series metrics."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose


def _get_components(ctx):
    root = ctx.find_root()
    if "_components" not in root.obj:
        components = _init_components(root.obj.get("config_path"), root.obj.get("verbose"))
        root.obj["_components"] = components
        root.call_on_close(components["store"].close)
    return root.obj["_components"]


def _fail(ctx, error):
    console.print(f"[red]✗[/red] {escape(str(error))}")
    ctx.exit(1)


def _parse_time(value):
    if value is None:
        return None
    from models.alerts import parse_timestamp
    try:
        return parse_timestamp(value)
    except ValueError:
        raise click.BadParameter(f"not an ISO-8601 timestamp: {value}")


def _rule_table(rules, title="Alert Rules"):
    from utils.formatters import format_number

    table = Table(title=title, show_header=True)
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Metric")
    table.add_column("Condition")
    table.add_column("Window")
    table.add_column("Enabled")
    for r in rules:
        value = format_number(r.value)
        if r.condition.value == "threshold":
            cond, window = f">= {value}", "-"
        else:
            cond, window = f"{r.condition.value} {value}%", f"{r.time_window_minutes}m"
        table.add_row(r.id, escape(r.name), escape(r.metric), cond, window,
                      "[green]✓[/green]" if r.enabled else "[red]✗[/red]")
    return table


# ──────────────────────────────────────────────────────
# RULES
# ──────────────────────────────────────────────────────
@cli.group()
def rules():
    """Alert rule management."""
    pass


@rules.command("list")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def rules_list(ctx, as_json):
    """List all alert rules."""
    c = _get_components(ctx)
    all_rules = sorted(c["monitor"].list_rules(), key=lambda r: r.name.lower())
    if as_json:
        click.echo(json.dumps([r.to_dict() for r in all_rules], indent=2))
        return
    if not all_rules:
        console.print("[dim]No alert rules configured[/dim]")
        return
    console.print(_rule_table(all_rules))


@rules.command("add")
@click.option("--name", required=True, help="Display name")
@click.option("--metric", required=True, help="Metric the rule watches, e.g. status5xx")
@click.option("--condition", required=True, type=click.Choice(["increase", "decrease", "threshold"]))
@click.option("--value", required=True, type=float, help="Percent for increase/decrease, absolute for threshold")
@click.option("--window", "time_window_minutes", default=5, type=int, help="Lookback window in minutes")
@click.option("--disabled", is_flag=True, help="Create the rule disabled")
@click.pass_context
def rules_add(ctx, name, metric, condition, value, time_window_minutes, disabled):
    """Register a new alert rule."""
    from alerts.errors import AlertsError

    c = _get_components(ctx)
    try:
        rule = c["monitor"].register_rule(
            name=name, metric=metric, condition=condition, value=value,
            time_window_minutes=time_window_minutes, enabled=not disabled,
        )
    except AlertsError as e:
        _fail(ctx, e)
    console.print(f"[green]✓[/green] Registered rule [bold]{escape(rule.name)}[/bold] ({rule.id})")


@rules.command("update")
@click.argument("rule_id")
@click.option("--name", default=None)
@click.option("--metric", default=None)
@click.option("--condition", default=None, type=click.Choice(["increase", "decrease", "threshold"]))
@click.option("--value", default=None, type=float)
@click.option("--window", "time_window_minutes", default=None, type=int)
@click.pass_context
def rules_update(ctx, rule_id, **fields):
    """Change fields of an existing rule."""
    from alerts.errors import AlertsError

    patch = {k: v for k, v in fields.items() if v is not None}
    if not patch:
        _fail(ctx, "Nothing to update")
    c = _get_components(ctx)
    try:
        rule = c["monitor"].update_rule(rule_id, patch)
    except AlertsError as e:
        _fail(ctx, e)
    console.print(f"[green]✓[/green] Updated rule [bold]{escape(rule.name)}[/bold]")


def _set_enabled(ctx, rule_id, enabled):
    from alerts.errors import AlertsError

    c = _get_components(ctx)
    try:
        rule = c["monitor"].set_enabled(rule_id, enabled)
    except AlertsError as e:
        _fail(ctx, e)
    state = "enabled" if rule.enabled else "disabled"
    console.print(f"[green]✓[/green] Rule [bold]{escape(rule.name)}[/bold] {state}")


@rules.command("enable")
@click.argument("rule_id")
@click.pass_context
def rules_enable(ctx, rule_id):
    """Enable a rule."""
    _set_enabled(ctx, rule_id, True)


@rules.command("disable")
@click.argument("rule_id")
@click.pass_context
def rules_disable(ctx, rule_id):
    """Disable a rule."""
    _set_enabled(ctx, rule_id, False)


@rules.command("delete")
@click.argument("rule_id")
@click.pass_context
def rules_delete(ctx, rule_id):
    """Delete a rule (unknown ids are ignored)."""
    from alerts.errors import StorageError

    c = _get_components(ctx)
    try:
        c["monitor"].delete_rule(rule_id)
    except StorageError as e:
        _fail(ctx, e)
    console.print(f"[green]✓[/green] Rule {rule_id} deleted")


# ──────────────────────────────────────────────────────
# INGESTION
# ──────────────────────────────────────────────────────
@cli.command()
@click.argument("metric")
@click.argument("value", type=float)
@click.option("--at", "at", default=None, help="Observation time, ISO-8601 (default: now)")
@click.pass_context
def ingest(ctx, metric, value, at):
    """Record one metric observation and evaluate matching rules."""
    from alerts.errors import AlertsError

    c = _get_components(ctx)
    try:
        triggered = c["monitor"].ingest(metric, value, _parse_time(at))
    except AlertsError as e:
        _fail(ctx, e)
    if not triggered:
        console.print("[green]All clear - no alerts triggered[/green]")
    else:
        console.print(f"[bold yellow]{len(triggered)} alert(s) triggered[/bold yellow]")


@cli.command()
@click.argument("payload_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--at", "at", default=None, help="Observation time, ISO-8601 (default: now)")
@click.pass_context
def check(ctx, payload_file, at):
    """Ingest every tracked metric from a JSON analytics payload."""
    from alerts.errors import AlertsError

    with open(payload_file) as f:
        try:
            payload = json.load(f)
        except ValueError as e:
            _fail(ctx, f"Invalid JSON payload: {e}")
    c = _get_components(ctx)
    try:
        triggered = c["monitor"].check_metrics(payload, _parse_time(at))
    except AlertsError as e:
        _fail(ctx, e)
    console.print(c["monitor"].format_alert_summary(triggered), markup=False)


@cli.command()
@click.option("--at", "at", default=None, help="Evaluation time, ISO-8601 (default: now)")
@click.pass_context
def preview(ctx, at):
    """Show which rules would fire against stored snapshots, without alerting."""
    from utils.formatters import format_number, format_pct

    c = _get_components(ctx)
    results = c["monitor"].preview_rules(_parse_time(at))
    if not results:
        console.print("[dim]No alert rules configured[/dim]")
        return

    table = Table(title="Alert Rules Preview", show_header=True)
    table.add_column("Rule")
    table.add_column("Metric")
    table.add_column("Current")
    table.add_column("Baseline")
    table.add_column("Change")
    table.add_column("Would Fire")
    table.add_column("Enabled")
    for r in results:
        fire_str = f"[green]YES[/green] ({r['severity']})" if r["would_fire"] else "[dim]no[/dim]"
        table.add_row(escape(r["name"]), escape(r["metric"]), format_number(r["current_value"]),
                      format_number(r["baseline"]), format_pct(r["change_pct"], 1, with_color=True),
                      fire_str, "✓" if r["enabled"] else "✗")
    console.print(table)


# ──────────────────────────────────────────────────────
# HISTORY
# ──────────────────────────────────────────────────────
@cli.command()
@click.option("--limit", default=20, type=int, help="Number of alerts to show")
@click.option("--unacked", is_flag=True, help="Only unacknowledged alerts")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def history(ctx, limit, unacked, as_json):
    """Show past alerts, most recent first."""
    from utils.formatters import format_timestamp

    c = _get_components(ctx)
    monitor = c["monitor"]
    recent = monitor.history.unacknowledged()[:limit] if unacked else monitor.alert_history(limit)
    if as_json:
        click.echo(json.dumps([a.to_dict() for a in recent], indent=2))
        return
    if not recent:
        console.print("[dim]No alerts in history[/dim]")
        return
    table = Table(title="Alert History", show_header=True)
    table.add_column("ID", style="dim")
    table.add_column("Time", style="dim")
    table.add_column("Severity")
    table.add_column("Rule")
    table.add_column("Message")
    table.add_column("Ack")
    for a in recent:
        table.add_row(a.id, format_timestamp(a.triggered_at), a.severity.value,
                      escape(a.rule_name), escape(a.message[:80]), "✓" if a.acknowledged else "")
    console.print(table)


@cli.command()
@click.argument("alert_id")
@click.pass_context
def ack(ctx, alert_id):
    """Acknowledge an alert (unknown ids are ignored)."""
    from alerts.errors import StorageError

    c = _get_components(ctx)
    try:
        c["monitor"].acknowledge(alert_id)
    except StorageError as e:
        _fail(ctx, e)
    console.print(f"[green]✓[/green] Alert {alert_id} acknowledged")


@cli.command("clear-history")
@click.confirmation_option(prompt="Delete the entire alert history?")
@click.pass_context
def clear_history(ctx):
    """Delete every alert from history."""
    from alerts.errors import StorageError

    c = _get_components(ctx)
    try:
        c["monitor"].clear_history()
    except StorageError as e:
        _fail(ctx, e)
    console.print("[green]✓[/green] Alert history cleared")


if __name__ == "__main__":
    cli()
