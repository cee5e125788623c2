"""Wait-for-completion of deployments, undeployments and workflow executions.

Two modes are provided:

- Blocking mode (deploy, undeploy): one loop sleeps for the polling
  interval, emits the new log entries, then polls the status, until the
  status is terminal.
- Callback mode (workflow execution): the execution is monitored by the
  deployment service in the background, which invokes a completion
  callback exactly once. The callback resolves a single-slot future; the
  log/event loop races that future against the interval and stops as soon
  as it is resolved.

Errors from remote calls are never swallowed or retried: the first one
propagates and paginator cursors stay where they were. A failing terminal
status is a normal outcome, returned as ``OperationResult(succeeded=False)``.

Public API (the "studs"):
    OperationMonitor: Drives monitored operations to completion
    LogSink, EventSink: Callables receiving emitted entries
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from ..client.applications import DEFAULT_ENVIRONMENT_NAME
from ..exceptions import RemoteError
from ..models import (
    Event,
    LogEntry,
    LogFilter,
    OperationHandle,
    OperationKind,
    OperationResult,
    OperationStatus,
    WorkflowExecution,
)
from ..services import ApplicationService, DeploymentService, EventService, LogService
from .formatting import format_event, format_log_entry
from .paginator import EventPaginator, LogPaginator
from .poller import DEFAULT_POLL_INTERVAL, StatusPoller

if TYPE_CHECKING:
    from ..client import A4CClient
    from ..config import ClientConfig

_logger = logging.getLogger(__name__)

# Default destination of emitted logs and events
operations_logger = logging.getLogger("a4c_client.operations")

LogSink = Callable[[LogEntry], None]
EventSink = Callable[[Event], None]

_Completion = tuple["WorkflowExecution | None", "BaseException | None"]


def _log_to_logger(entry: LogEntry) -> None:
    operations_logger.info(format_log_entry(entry))


def _event_to_logger(event: Event) -> None:
    operations_logger.info("Event received: %s", format_event(event))


class OperationMonitor:
    """Monitors long-running operations of one Alien4Cloud server.

    Usage:
        monitor = OperationMonitor.from_client(client)
        result = await monitor.deploy(app_id, env_id)
        if not result.succeeded:
            ...
    """

    def __init__(
        self,
        applications: ApplicationService,
        deployments: DeploymentService,
        logs: LogService,
        events: EventService | None = None,
        interval: float = DEFAULT_POLL_INTERVAL,
        deadline: float | None = None,
        log_sink: LogSink | None = None,
        event_sink: EventSink | None = None,
    ) -> None:
        """Initialize the monitor.

        Args:
            applications: Application service
            deployments: Deployment service (starts operations, reports statuses)
            logs: Log service
            events: Event service, required to follow events of workflow runs
            interval: Fixed seconds between poll cycles
            deadline: Seconds after which monitoring raises OperationTimeout
            log_sink: Receives each new log entry (default: ``a4c_client.operations`` logger)
            event_sink: Receives each new instance-state event
        """
        self._applications = applications
        self._deployments = deployments
        self._logs = logs
        self._events = events
        self._interval = interval
        self._deadline = deadline
        self._log_sink = log_sink or _log_to_logger
        self._event_sink = event_sink or _event_to_logger

    @classmethod
    def from_client(
        cls, client: A4CClient, config: ClientConfig | None = None, **kwargs: Any
    ) -> OperationMonitor:
        """Build a monitor over the services of a client, timed from its config."""
        config = config or client.config
        kwargs.setdefault("interval", config.poll_interval_seconds)
        kwargs.setdefault("deadline", config.operation_timeout_seconds)
        return cls(
            client.applications, client.deployments, client.logs, client.events, **kwargs
        )

    # =========================================================================
    # Emission
    # =========================================================================

    def _emit_logs(self, entries: list[LogEntry]) -> int:
        for entry in entries:
            self._log_sink(entry)
        return len(entries)

    def _emit_events(self, events: list[Event]) -> int:
        emitted = 0
        for event in events:
            if event.is_instance_state_event:
                self._event_sink(event)
                emitted += 1
        return emitted

    # =========================================================================
    # Blocking mode
    # =========================================================================

    async def wait_for_completion(
        self, handle: OperationHandle, filters: LogFilter | None = None
    ) -> OperationResult:
        """Follow a deployment or undeployment until its status is terminal.

        Each cycle sleeps one interval, emits new log entries, then polls the
        status.

        Raises:
            RemoteError: On the first failed log fetch or status poll
            OperationTimeout: If the deadline elapses first
        """
        poller = StatusPoller(self._deployments, handle, self._interval, self._deadline)
        paginator = LogPaginator(
            self._logs, handle.application_id, handle.environment_id, filters
        )
        logs_emitted = 0

        while True:
            await poller.sleep()
            logs_emitted += self._emit_logs(await paginator.fetch_new())
            status = await poller.poll()
            if poller.is_terminal(status):
                break
            poller.check_deadline()

        result = OperationResult(
            handle=handle,
            status=status,
            outcome=OperationStatus.parse(status),
            succeeded=poller.is_success(status),
            logs_emitted=logs_emitted,
            polls=poller.polls,
        )
        _logger.info(
            "%s of %s ended with status %s", handle.kind, handle.application_id, status
        )
        return result

    async def deploy(self, app_id: str, env_id: str, location: str = "") -> OperationResult:
        """Deploy an application and wait for a terminal status.

        A failure to start the deployment is raised before any polling.
        """
        await self._deployments.deploy_application(app_id, env_id, location)
        handle = OperationHandle(
            kind=OperationKind.DEPLOYMENT, application_id=app_id, environment_id=env_id
        )
        return await self.wait_for_completion(handle)

    async def undeploy(self, app_id: str, env_id: str) -> OperationResult:
        """Undeploy an application and wait for a terminal status."""
        await self._deployments.undeploy_application(app_id, env_id)
        handle = OperationHandle(
            kind=OperationKind.UNDEPLOYMENT, application_id=app_id, environment_id=env_id
        )
        return await self.wait_for_completion(handle)

    async def create_and_deploy(
        self,
        app_name: str,
        template: str,
        location: str = "",
        env_name: str = DEFAULT_ENVIRONMENT_NAME,
    ) -> OperationResult:
        """Create an application from a topology template, then deploy it."""
        app_id = await self._applications.create_application(app_name, template)
        env_id = await self._applications.get_environment_id(app_id, env_name)
        return await self.deploy(app_id, env_id, location)

    async def undeploy_and_delete(
        self, app_id: str, env_name: str = DEFAULT_ENVIRONMENT_NAME
    ) -> OperationResult:
        """Undeploy an application and delete it once undeployed.

        The application is kept when the undeployment does not succeed.
        """
        env_id = await self._applications.get_environment_id(app_id, env_name)
        result = await self.undeploy(app_id, env_id)
        if result.succeeded:
            await self._applications.delete_application(app_id)
            _logger.info("Application %s deleted", app_id)
        return result

    async def collect_outputs(self, app_id: str, env_id: str) -> dict[str, dict[str, str]]:
        """Return output attribute values of a deployed application, per node."""
        outputs: dict[str, dict[str, str]] = {}
        attributes = await self._deployments.get_output_attributes(app_id, env_id)
        for node_name, names in attributes.items():
            outputs[node_name] = await self._deployments.get_attributes_value(
                app_id, env_id, node_name, names
            )
        return outputs

    # =========================================================================
    # Callback mode
    # =========================================================================

    async def run_workflow(
        self, app_id: str, env_id: str, workflow_name: str, show_events: bool = False
    ) -> OperationResult:
        """Run a workflow, following its logs (or events) until it ends.

        Args:
            app_id: Application ID
            env_id: Environment ID
            workflow_name: Workflow to run
            show_events: Follow instance-state events instead of logs

        Returns:
            The result, failing when the execution failed or was cancelled

        Raises:
            RemoteError: If starting, following or monitoring the execution fails
            OperationTimeout: If the deadline elapses first
        """
        done: asyncio.Future[_Completion] = asyncio.get_running_loop().create_future()

        def _on_completion(
            execution: WorkflowExecution | None, error: BaseException | None
        ) -> None:
            if done.done():
                return
            if execution is not None:
                operations_logger.info("Workflow ended with status: %s", execution.status)
            done.set_result((execution, error))

        event_paginator: EventPaginator | None = None
        if show_events:
            if self._events is None:
                raise ValueError("an event service is required to follow events")
            event_paginator = EventPaginator(self._events, env_id)
            await event_paginator.prime()

        execution_id = await self._deployments.run_workflow_async(
            app_id, env_id, workflow_name, _on_completion
        )
        handle = OperationHandle(
            kind=OperationKind.WORKFLOW_EXECUTION,
            application_id=app_id,
            environment_id=env_id,
            execution_id=execution_id,
            workflow_name=workflow_name,
        )
        poller = StatusPoller(self._deployments, handle, self._interval, self._deadline)
        log_paginator = LogPaginator(
            self._logs, app_id, env_id, LogFilter(execution_id=[execution_id])
        )
        logs_emitted = events_emitted = polls = 0

        try:
            while True:
                if not done.done():
                    await asyncio.wait({done}, timeout=self._interval)
                if done.done():
                    break
                polls += 1
                if event_paginator is not None:
                    events_emitted += self._emit_events(await event_paginator.fetch_new())
                else:
                    logs_emitted += self._emit_logs(await log_paginator.fetch_new())
                poller.check_deadline()
        except BaseException:
            self._deployments.cancel_monitors(execution_id)
            raise

        execution, error = done.result()
        if error is not None:
            if isinstance(error, RemoteError):
                raise error
            raise RemoteError(
                f"Monitoring of workflow {workflow_name!r} execution {execution_id!r} "
                f"failed: {error!r}"
            ) from error
        if execution is None:
            raise RemoteError(f"No execution reported for workflow {workflow_name!r}")

        return OperationResult(
            handle=handle,
            status=execution.status,
            outcome=OperationStatus.parse(execution.status),
            succeeded=poller.is_success(execution.status),
            execution=execution,
            logs_emitted=logs_emitted,
            events_emitted=events_emitted,
            polls=polls,
        )


__all__ = ["OperationMonitor", "LogSink", "EventSink", "operations_logger"]
