"""Service protocols - the contract the operation monitor expects from a client.

Each protocol covers one remote service. The concrete HTTP implementations
live in ``a4c_client.client``; tests drive the monitor with fakes.

Public API (the "studs"):
    ApplicationService: Application lifecycle
    DeploymentService: Deployment, status and workflow execution
    LogService: Deployment log search
    EventService: Deployment event feed
    CatalogService: CSAR upload
    ExecutionCallback: Completion callback of an asynchronous workflow run
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, BinaryIO, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .models import (
        CSAR,
        Application,
        Deployment,
        Event,
        LocationMatch,
        LogEntry,
        LogFilter,
        SearchResult,
        WorkflowExecution,
    )

# Invoked exactly once, with either the terminal execution or the error
ExecutionCallback = Callable[["WorkflowExecution | None", "BaseException | None"], None]


@runtime_checkable
class ApplicationService(Protocol):
    """Applications and their environments."""

    async def create_application(self, name: str, template: str) -> str:
        """Create an application from a topology template and return its ID."""
        ...

    async def get_environment_id(self, app_id: str, env_name: str = "Environment") -> str:
        """Return the ID of the named environment of an application."""
        ...

    async def application_exists(self, app_id: str) -> bool:
        """Return True if the application exists."""
        ...

    async def get_application(self, app_id: str) -> Application:
        """Return the application with the given ID."""
        ...

    async def delete_application(self, app_id: str) -> None:
        """Delete an application."""
        ...


@runtime_checkable
class DeploymentService(Protocol):
    """Deployments, statuses and workflow executions."""

    async def get_locations_matching(self, topology_id: str, env_id: str) -> list[LocationMatch]:
        """Return the locations on which a topology can be deployed."""
        ...

    async def deploy_application(self, app_id: str, env_id: str, location: str = "") -> None:
        """Start deploying an application (first matching location if empty)."""
        ...

    async def undeploy_application(self, app_id: str, env_id: str) -> None:
        """Start undeploying an application."""
        ...

    async def get_deployment_list(self, app_id: str, env_id: str) -> list[Deployment]:
        """Return the deployments of an application environment."""
        ...

    async def get_current_deployment_id(self, app_id: str, env_id: str) -> str:
        """Return the active deployment ID, empty if not deployed."""
        ...

    async def get_deployment_status(self, app_id: str, env_id: str) -> str:
        """Return the raw deployment status string."""
        ...

    async def wait_until_state_is(
        self, app_id: str, env_id: str, *statuses: str, interval: float = 1.0
    ) -> str:
        """Wait until the deployment status is one of ``statuses`` and return it."""
        ...

    async def get_output_attributes(self, app_id: str, env_id: str) -> dict[str, list[str]]:
        """Return output attribute names per node."""
        ...

    async def get_attributes_value(
        self, app_id: str, env_id: str, node_name: str, attributes: list[str],
        instance: str = "0",
    ) -> dict[str, str]:
        """Return attribute values of a node instance."""
        ...

    async def run_workflow_async(
        self, app_id: str, env_id: str, workflow_name: str, callback: ExecutionCallback
    ) -> str:
        """Start a workflow and return its execution ID.

        The callback is invoked exactly once when the execution ends.
        """
        ...

    async def run_workflow(
        self, app_id: str, env_id: str, workflow_name: str, timeout: float
    ) -> WorkflowExecution:
        """Run a workflow and wait for its terminal execution."""
        ...

    async def get_executions(
        self, deployment_id: str = "", query: str = "", from_: int = 0, size: int = 50
    ) -> tuple[list[WorkflowExecution], SearchResult]:
        """Search workflow executions."""
        ...

    async def get_last_workflow_execution(self, app_id: str, env_id: str) -> WorkflowExecution:
        """Return the last workflow execution of the active deployment."""
        ...

    async def get_execution(
        self, deployment_id: str, workflow_name: str, execution_id: str
    ) -> WorkflowExecution:
        """Return one execution of a workflow; NotFoundError if there is none."""
        ...

    async def cancel_execution(self, env_id: str, execution_id: str) -> None:
        """Cancel a running workflow execution."""
        ...

    def cancel_monitors(self, execution_id: str | None = None) -> None:
        """Stop background monitoring of one execution, or of all of them."""
        ...


@runtime_checkable
class LogService(Protocol):
    """Deployment logs."""

    async def get_logs(
        self, app_id: str, env_id: str, filters: LogFilter | None = None, from_index: int = 0
    ) -> tuple[list[LogEntry], int]:
        """Return log entries after ``from_index`` and their count, in server order."""
        ...


@runtime_checkable
class EventService(Protocol):
    """Deployment events."""

    async def get_events(
        self, env_id: str, from_index: int = 0, size: int = 1
    ) -> tuple[list[Event], int]:
        """Return events newest first, and the total number of events."""
        ...


@runtime_checkable
class CatalogService(Protocol):
    """Catalog archives."""

    async def upload_csar(self, archive: BinaryIO | bytes, workspace: str = "") -> CSAR:
        """Upload a CSAR; raises ContentError when parsing problems are reported."""
        ...


__all__ = [
    "ApplicationService",
    "DeploymentService",
    "LogService",
    "EventService",
    "CatalogService",
    "ExecutionCallback",
]
