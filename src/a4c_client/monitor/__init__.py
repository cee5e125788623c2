"""Asynchronous operation monitor.

Tracks long-running server-side operations (deployment, undeployment,
workflow execution) to completion while following their logs or events.
"""

from .formatting import format_event, format_log_entry
from .operation import EventSink, LogSink, OperationMonitor
from .paginator import EventPaginator, LogPaginator
from .poller import SUCCESS_STATUSES, TERMINAL_STATUSES, StatusPoller

__all__ = [
    "OperationMonitor",
    "LogPaginator",
    "EventPaginator",
    "StatusPoller",
    "TERMINAL_STATUSES",
    "SUCCESS_STATUSES",
    "LogSink",
    "EventSink",
    "format_log_entry",
    "format_event",
]
