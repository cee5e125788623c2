"""One-line renderings of log entries and events for console sinks."""

from __future__ import annotations

from datetime import datetime, timezone

from ..models import Event, LogEntry

_RFC3339 = "%Y-%m-%dT%H:%M:%SZ"


def format_timestamp(value: datetime | None) -> str:
    if value is None:
        return "-"
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(_RFC3339)


def format_log_entry(entry: LogEntry) -> str:
    """Render a log entry as ``time [paas][level][workflow][node][instance][interface][operation] content``."""
    fields = (
        entry.deployment_paas_id,
        entry.level,
        entry.workflow_id,
        entry.node_id,
        entry.instance_id,
        entry.interface_name,
        entry.operation_name,
    )
    brackets = "".join(f"[{field}]" for field in fields)
    return f"{format_timestamp(entry.timestamp)} {brackets} {entry.content}"


def format_event(event: Event) -> str:
    return (
        f"component {event.node_template_id} instance {event.instance_id} "
        f"state {event.instance_state}"
    )


__all__ = ["format_log_entry", "format_event", "format_timestamp"]
