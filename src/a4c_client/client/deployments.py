"""Deployment, status and workflow execution endpoints."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from ..exceptions import NotFoundError, OperationTimeout, RemoteError
from ..models import (
    Deployment,
    LocationMatch,
    OperationHandle,
    OperationKind,
    OperationStatus,
    SearchResult,
    WorkflowExecution,
)
from ..services import ExecutionCallback
from .transport import RestClient, decode_model

_logger = logging.getLogger(__name__)

# Delay before monitoring a freshly started execution; the server needs
# about a second to register it.
WORKFLOW_REGISTRATION_DELAY = 1.0


class Deployments:
    """DeploymentService implementation over the REST API."""

    def __init__(
        self,
        rest: RestClient,
        poll_interval: float = 5.0,
        registration_delay: float = WORKFLOW_REGISTRATION_DELAY,
    ) -> None:
        """Initialize the service.

        Args:
            rest: Transport
            poll_interval: Interval between execution polls of asynchronous workflow runs
            registration_delay: Wait before the first execution poll
        """
        self._rest = rest
        self._poll_interval = poll_interval
        self._registration_delay = registration_delay
        self._monitors: dict[str, asyncio.Task[None]] = {}

    # =========================================================================
    # Deploy / undeploy
    # =========================================================================

    async def get_topology_id(self, app_id: str, env_id: str) -> str:
        res = await self._rest.request(
            "GET",
            f"/applications/{app_id}/environments/{env_id}/topology",
            context=f"Cannot find the topology of application {app_id!r} in environment {env_id!r}",
        )
        return (res or {}).get("data") or ""

    async def get_locations_matching(self, topology_id: str, env_id: str) -> list[LocationMatch]:
        res = await self._rest.request(
            "GET",
            f"/topologies/{topology_id}/locations",
            params={"environmentId": env_id},
            context=f"Cannot get locations matching topology {topology_id!r}",
        )
        return [decode_model(LocationMatch, m) for m in (res or {}).get("data") or []]

    async def deploy_application(self, app_id: str, env_id: str, location: str = "") -> None:
        """Start deploying an application.

        Args:
            app_id: Application ID
            env_id: Environment ID
            location: Location name; the first matching location is used if empty

        Raises:
            NotFoundError: If the location does not match the topology
            RemoteError: If any request fails
        """
        topology_id = await self.get_topology_id(app_id, env_id)
        matches = await self.get_locations_matching(topology_id, env_id)

        selected = next(
            (m for m in matches if not location or m.location.name == location), None
        )
        if selected is None:
            names = [m.location.name for m in matches]
            raise NotFoundError(
                f"Location {location!r} not found in list of matching locations: {names}"
            )

        await self._rest.request(
            "POST",
            f"/applications/{app_id}/environments/{env_id}/deployment-topology/location-policies",
            json={
                "groupsToLocations": {"_A4C_ALL": selected.location.id},
                "orchestratorId": selected.location.orchestrator_id,
            },
            context="Cannot set the deployment location",
        )
        await self._rest.request(
            "POST",
            "/applications/deployment",
            json={"applicationEnvironmentId": env_id, "applicationId": app_id},
            context=f"Cannot deploy application {app_id!r}",
        )
        _logger.info(
            "Deployment of %s/%s started on location %s", app_id, env_id, selected.location.name
        )

    async def update_application(self, app_id: str, env_id: str) -> None:
        """Update a deployed application with its latest topology version."""
        await self._rest.request(
            "POST",
            f"/applications/{app_id}/environments/{env_id}/update-deployment",
            json={},
            context=f"Cannot update application {app_id!r}",
        )

    async def undeploy_application(self, app_id: str, env_id: str) -> None:
        await self._rest.request(
            "DELETE",
            f"/applications/{app_id}/environments/{env_id}/deployment",
            context=f"Cannot undeploy application {app_id!r}",
        )
        _logger.info("Undeployment of %s/%s started", app_id, env_id)

    # =========================================================================
    # Status
    # =========================================================================

    async def get_deployment_list(self, app_id: str, env_id: str) -> list[Deployment]:
        res = await self._rest.request(
            "GET",
            "/deployments/search",
            params={"environmentId": env_id, "from": 0, "query": ""},
            context=f"Cannot get deployments of application {app_id!r} environment {env_id!r}",
        )
        items = ((res or {}).get("data") or {}).get("data") or []
        return [
            decode_model(Deployment, item["deployment"])
            for item in items
            if item.get("deployment")
        ]

    async def get_current_deployment_id(self, app_id: str, env_id: str) -> str:
        res = await self._rest.request(
            "GET",
            f"/applications/{app_id}/environments/{env_id}/active-deployment-monitored",
            context=f"Cannot get the current deployment of application {app_id!r}",
        )
        data = (res or {}).get("data") or {}
        return (data.get("deployment") or {}).get("id") or ""

    async def get_deployment_status(self, app_id: str, env_id: str) -> str:
        """Return the raw status of the active deployment.

        An environment without active deployment reports ``undeployed``.
        """
        deployment_id = await self.get_current_deployment_id(app_id, env_id)
        if not deployment_id:
            return OperationStatus.UNDEPLOYED.value

        res = await self._rest.request(
            "GET",
            f"/deployments/{deployment_id}/status",
            context=f"Cannot get deployment status of application {app_id!r} environment {env_id!r}",
        )
        return (res or {}).get("data") or ""

    async def wait_until_state_is(
        self, app_id: str, env_id: str, *statuses: str, interval: float = 1.0
    ) -> str:
        """Wait until the deployment status is one of ``statuses`` and return it.

        Raises:
            ValueError: If no status is given
            RemoteError: If a status request fails
        """
        if not statuses:
            raise ValueError("at least one status should be given")
        while True:
            status = await self.get_deployment_status(app_id, env_id)
            if status in statuses:
                return status
            await asyncio.sleep(interval)

    async def _informations(self, app_id: str, env_id: str) -> dict[str, Any]:
        res = await self._rest.request(
            "GET",
            f"/applications/{app_id}/environments/{env_id}/deployment/informations",
            context=f"Cannot get runtime information of application {app_id!r}",
        )
        return (res or {}).get("data") or {}

    async def get_node_status(self, app_id: str, env_id: str, node_name: str) -> str:
        """Return the state of the first instance of a node, empty if nothing is deployed."""
        nodes = await self._informations(app_id, env_id)
        if not nodes:
            return ""
        if node_name not in nodes:
            raise NotFoundError(f"unable to get status of node {node_name!r}")
        return (nodes[node_name].get("0") or {}).get("state", "")

    async def get_output_attributes(self, app_id: str, env_id: str) -> dict[str, list[str]]:
        res = await self._rest.request(
            "GET",
            f"/runtime/{app_id}/environment/{env_id}/topology",
            context="Cannot get output attributes",
        )
        topology = ((res or {}).get("data") or {}).get("topology") or {}
        return topology.get("outputAttributes") or {}

    async def get_attributes_value(
        self,
        app_id: str,
        env_id: str,
        node_name: str,
        attributes: list[str],
        instance: str = "0",
    ) -> dict[str, str]:
        nodes = await self._informations(app_id, env_id)
        node_attributes = ((nodes.get(node_name) or {}).get(instance) or {}).get("attributes") or {}
        return {name: node_attributes[name] for name in attributes if name in node_attributes}

    # =========================================================================
    # Workflows
    # =========================================================================

    async def get_executions(
        self, deployment_id: str = "", query: str = "", from_: int = 0, size: int = 50
    ) -> tuple[list[WorkflowExecution], SearchResult]:
        params: dict[str, Any] = {"from": from_, "size": size}
        if deployment_id:
            params["deploymentId"] = deployment_id
        if query:
            params["query"] = query
        res = await self._rest.request(
            "GET",
            "/executions/search",
            params=params,
            context=f"Cannot get executions for deployment {deployment_id!r}",
        )
        data = (res or {}).get("data") or {}
        executions = [decode_model(WorkflowExecution, e) for e in data.get("data") or []]
        return executions, decode_model(SearchResult, data)

    async def get_last_workflow_execution(self, app_id: str, env_id: str) -> WorkflowExecution:
        deployment_id = await self.get_current_deployment_id(app_id, env_id)
        if not deployment_id:
            raise NotFoundError(f"Application {app_id!r} has no active deployment")
        res = await self._rest.request(
            "GET",
            f"/workflow_execution/{deployment_id}",
            context=f"Cannot get workflow status of application {app_id!r}",
        )
        execution = ((res or {}).get("data") or {}).get("execution") or {}
        return decode_model(WorkflowExecution, execution)

    async def get_execution(
        self, deployment_id: str, workflow_name: str, execution_id: str
    ) -> WorkflowExecution:
        """Return one execution of a workflow, searching executions page by page.

        The first page holds 50 executions; the next one covers all the rest.

        Raises:
            NotFoundError: If the deployment has no execution with this ID
            RemoteError: If a search request fails
        """
        from_, size = 0, 50
        while True:
            executions, page = await self.get_executions(deployment_id, workflow_name, from_, size)
            for execution in executions:
                if execution.id == execution_id:
                    return execution
            if page.total_results < from_ + size:
                raise NotFoundError(
                    f"Found no execution with ID {execution_id!r} for deployment "
                    f"{deployment_id!r} workflow {workflow_name!r}"
                )
            from_ += size
            size = page.total_results

    async def cancel_execution(self, env_id: str, execution_id: str) -> None:
        """Ask the orchestrator to cancel a running workflow execution."""
        await self._rest.request(
            "POST",
            "/executions/cancel",
            json={"environmentId": env_id, "executionId": execution_id},
            context=f"Cannot cancel execution {execution_id!r} on environment {env_id!r}",
        )
        _logger.info("Cancellation of execution %s requested", execution_id)

    async def run_workflow_async(
        self, app_id: str, env_id: str, workflow_name: str, callback: ExecutionCallback
    ) -> str:
        """Start a workflow and monitor its execution in a background task.

        Args:
            app_id: Application ID
            env_id: Environment ID
            workflow_name: Workflow to run
            callback: Invoked exactly once with the terminal execution or the error

        Returns:
            The execution ID

        Raises:
            RemoteError: If the workflow cannot be started
        """
        res = await self._rest.request(
            "POST",
            f"/applications/{app_id}/environments/{env_id}/workflows/{workflow_name}",
            context=f"Cannot run workflow {workflow_name!r} on application {app_id!r}",
        )
        execution_id = (res or {}).get("data") or ""
        if not execution_id:
            raise RemoteError(
                f"No execution id returned on run workflow {workflow_name!r} "
                f"on application {app_id!r}, environment {env_id!r}"
            )
        _logger.info("Workflow %s started on %s/%s: %s", workflow_name, app_id, env_id, execution_id)

        await asyncio.sleep(self._registration_delay)
        task = asyncio.create_task(
            self._monitor_execution(execution_id, workflow_name, callback),
            name=f"a4c-execution-{execution_id}",
        )
        self._monitors[execution_id] = task
        task.add_done_callback(lambda _t: self._monitors.pop(execution_id, None))
        return execution_id

    async def _wait_for_execution(self, execution_id: str, workflow_name: str) -> WorkflowExecution:
        while True:
            executions, _ = await self.get_executions(query=execution_id, size=1)
            if len(executions) != 1:
                raise RemoteError(
                    f"expecting 1 execution on monitoring execution id {execution_id!r} "
                    f"for workflow {workflow_name!r}, but actually got {len(executions)}"
                )
            if executions[0].is_terminal:
                return executions[0]
            await asyncio.sleep(self._poll_interval)

    async def _monitor_execution(
        self, execution_id: str, workflow_name: str, callback: ExecutionCallback
    ) -> None:
        execution: WorkflowExecution | None = None
        error: BaseException | None = None
        try:
            execution = await self._wait_for_execution(execution_id, workflow_name)
        except asyncio.CancelledError as e:
            callback(None, e)
            raise
        except Exception as e:
            error = e
        callback(execution, error)

    async def run_workflow(
        self, app_id: str, env_id: str, workflow_name: str, timeout: float
    ) -> WorkflowExecution:
        """Run a workflow and wait for its terminal execution.

        Raises:
            OperationTimeout: If the execution does not end within ``timeout`` seconds
            RemoteError: If starting or monitoring the execution fails
        """
        done: asyncio.Future[tuple[WorkflowExecution | None, BaseException | None]] = (
            asyncio.get_running_loop().create_future()
        )

        def _on_completion(execution: WorkflowExecution | None, error: BaseException | None) -> None:
            if not done.done():
                done.set_result((execution, error))

        execution_id = await self.run_workflow_async(app_id, env_id, workflow_name, _on_completion)
        try:
            execution, error = await asyncio.wait_for(done, timeout)
        except asyncio.TimeoutError:
            self.cancel_monitors(execution_id)
            handle = OperationHandle(
                kind=OperationKind.WORKFLOW_EXECUTION,
                application_id=app_id,
                environment_id=env_id,
                execution_id=execution_id,
                workflow_name=workflow_name,
            )
            raise OperationTimeout(handle, None, timeout) from None
        if error is not None:
            raise error
        return execution

    def cancel_monitors(self, execution_id: str | None = None) -> None:
        """Cancel background monitoring of one running execution, or of all of them."""
        for key, task in list(self._monitors.items()):
            if execution_id is None or key == execution_id:
                task.cancel()


__all__ = ["Deployments", "WORKFLOW_REGISTRATION_DELAY"]
