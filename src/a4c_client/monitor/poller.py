"""Fixed-interval status polling of a monitored operation."""

from __future__ import annotations

import asyncio
import logging
import time

from ..exceptions import OperationTimeout, RemoteError
from ..models import OperationHandle, OperationKind, OperationStatus
from ..services import DeploymentService

_logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 5.0

# Terminal statuses per operation kind, and the one meaning success
TERMINAL_STATUSES: dict[OperationKind, frozenset[OperationStatus]] = {
    OperationKind.DEPLOYMENT: frozenset(
        {OperationStatus.DEPLOYED, OperationStatus.FAILURE, OperationStatus.ERROR}
    ),
    OperationKind.UNDEPLOYMENT: frozenset(
        {OperationStatus.UNDEPLOYED, OperationStatus.FAILURE, OperationStatus.ERROR}
    ),
    OperationKind.WORKFLOW_EXECUTION: frozenset(
        {OperationStatus.SUCCEEDED, OperationStatus.FAILED, OperationStatus.CANCELLED}
    ),
}

SUCCESS_STATUSES: dict[OperationKind, OperationStatus] = {
    OperationKind.DEPLOYMENT: OperationStatus.DEPLOYED,
    OperationKind.UNDEPLOYMENT: OperationStatus.UNDEPLOYED,
    OperationKind.WORKFLOW_EXECUTION: OperationStatus.SUCCEEDED,
}


class StatusPoller:
    """Queries the status of one operation at a fixed interval.

    Errors from the deployment service propagate immediately; the poller
    never retries and never backs off.

    Attributes:
        last_status: Raw status returned by the latest poll
        polls: Number of successful polls
    """

    def __init__(
        self,
        deployments: DeploymentService,
        handle: OperationHandle,
        interval: float = DEFAULT_POLL_INTERVAL,
        deadline: float | None = None,
    ) -> None:
        """Initialize the poller.

        Args:
            deployments: Service queried for statuses
            handle: Operation to poll
            interval: Seconds between polls
            deadline: Seconds after which ``check_deadline`` raises (None = never)
        """
        self._deployments = deployments
        self._handle = handle
        self._kind = OperationKind(handle.kind)
        self._interval = interval
        self._deadline = deadline
        self._started = time.monotonic()
        self.last_status: str | None = None
        self.polls = 0

    @property
    def handle(self) -> OperationHandle:
        return self._handle

    async def poll(self) -> str:
        """Return the current raw status of the operation.

        Raises:
            RemoteError: If the status request fails
        """
        if self._kind is OperationKind.WORKFLOW_EXECUTION:
            status = await self._poll_execution()
        else:
            status = await self._deployments.get_deployment_status(
                self._handle.application_id, self._handle.environment_id
            )
        self.last_status = status
        self.polls += 1
        _logger.debug(
            "%s of %s: status %s (poll %d)",
            self._kind.value,
            self._handle.application_id,
            status,
            self.polls,
        )
        return status

    async def _poll_execution(self) -> str:
        executions, _ = await self._deployments.get_executions(
            query=self._handle.execution_id or "", size=1
        )
        if len(executions) != 1:
            raise RemoteError(
                f"expecting 1 execution for execution id {self._handle.execution_id!r}, "
                f"got {len(executions)}"
            )
        return executions[0].status

    def is_terminal(self, status: str | None) -> bool:
        return OperationStatus.parse(status) in TERMINAL_STATUSES[self._kind]

    def is_success(self, status: str | None) -> bool:
        return OperationStatus.parse(status) is SUCCESS_STATUSES[self._kind]

    async def sleep(self) -> None:
        """Wait one polling interval."""
        await asyncio.sleep(self._interval)

    def check_deadline(self) -> None:
        """Raise OperationTimeout once the deadline has elapsed."""
        if self._deadline is None:
            return
        if time.monotonic() - self._started >= self._deadline:
            raise OperationTimeout(self._handle, self.last_status, self._deadline)


__all__ = ["StatusPoller", "TERMINAL_STATUSES", "SUCCESS_STATUSES", "DEFAULT_POLL_INTERVAL"]
