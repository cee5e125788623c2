"""Data models for the Alien4Cloud REST API and the operation monitor.

Server payloads use camelCase keys; every model accepts both the server
alias and the Python field name.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, Field, model_validator
from pydantic.alias_generators import to_camel

from .exceptions import OperationFailed


def _from_epoch_millis(value: Any) -> Any:
    """Decode an Alien4Cloud timestamp (epoch milliseconds) to an aware datetime."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    return value


EpochMillis = Annotated[datetime | None, BeforeValidator(_from_epoch_millis)]


class _ApiModel(BaseModel):
    """Base for models decoded from server JSON."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        extra = "ignore"

    @model_validator(mode="before")
    @classmethod
    def null_means_default(cls, data: Any) -> Any:
        # The server sends null for unset fields
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data


# =============================================================================
# Monitored operations
# =============================================================================


class OperationKind(str, Enum):
    """Kinds of long-running server-side operations."""

    DEPLOYMENT = "deployment"
    UNDEPLOYMENT = "undeployment"
    WORKFLOW_EXECUTION = "workflow-execution"


class OperationStatus(str, Enum):
    """Statuses reported for deployments and workflow executions."""

    DEPLOYMENT_IN_PROGRESS = "deployment_in_progress"
    DEPLOYED = "deployed"
    UNDEPLOYMENT_IN_PROGRESS = "undeployment_in_progress"
    UNDEPLOYED = "undeployed"
    FAILURE = "failure"
    ERROR = "error"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw: str | None) -> OperationStatus:
        """Map a server status string to a known status, case-insensitively."""
        try:
            return cls((raw or "").strip().lower())
        except ValueError:
            return cls.UNKNOWN


class OperationHandle(BaseModel):
    """Identifies a remote long-running operation.

    Created when the operation is started and immutable afterwards.
    """

    kind: OperationKind = Field(..., description="Kind of operation")
    application_id: str = Field(..., description="Owning application")
    environment_id: str = Field(..., description="Owning environment")
    execution_id: str | None = Field(default=None, description="Workflow execution id")
    workflow_name: str | None = Field(default=None, description="Workflow name")

    class Config:
        frozen = True
        use_enum_values = True


class OperationResult(BaseModel):
    """Final outcome of a monitored operation."""

    handle: OperationHandle
    status: str = Field(..., description="Terminal status as reported by the server")
    outcome: OperationStatus = Field(..., description="Parsed terminal status")
    succeeded: bool = Field(..., description="Whether the status is the success status")
    execution: WorkflowExecution | None = Field(default=None, description="Workflow execution")
    logs_emitted: int = Field(default=0, description="Log entries emitted while monitoring")
    events_emitted: int = Field(default=0, description="Events emitted while monitoring")
    polls: int = Field(default=0, description="Number of poll cycles performed")

    class Config:
        use_enum_values = True

    def raise_for_outcome(self) -> OperationResult:
        """Raise OperationFailed unless the operation succeeded."""
        if not self.succeeded:
            raise OperationFailed(self)
        return self


# =============================================================================
# Logs and events
# =============================================================================


class LogEntry(_ApiModel):
    """One server-emitted log line of a deployment."""

    id: str = ""
    deployment_id: str = ""
    deployment_paas_id: str = Field(default="", alias="deploymentPaaSId")
    level: str = ""
    timestamp: EpochMillis = None
    workflow_id: str = ""
    execution_id: str = ""
    node_id: str = ""
    instance_id: str = ""
    interface_name: str = ""
    operation_name: str = ""
    content: str = ""


class LogFilter(_ApiModel):
    """Filters applied to a deployment log search."""

    level: list[str] = Field(default_factory=list)
    workflow_id: list[str] = Field(default_factory=list)
    execution_id: list[str] = Field(default_factory=list)

    def to_payload(self) -> dict[str, list[str]]:
        """Serialise with server keys, omitting empty filters."""
        return {
            key: value
            for key, value in self.model_dump(by_alias=True).items()
            if value
        }


class Event(_ApiModel):
    """A state-change notification of a deployed application."""

    node_template_id: str = Field(default="", alias="nodeTemplateId")
    instance_id: str = Field(default="", alias="instanceId")
    instance_state: str = ""
    event_type: str = ""
    date: EpochMillis = None

    @property
    def is_instance_state_event(self) -> bool:
        return bool(self.instance_state)


class SearchResult(_ApiModel):
    """Pagination envelope of faceted search responses."""

    from_: int = Field(default=0, alias="from")
    to: int = 0
    total_results: int = 0


# =============================================================================
# Applications, deployments and workflows
# =============================================================================


class WorkflowExecution(_ApiModel):
    """A workflow execution and its status (RUNNING, SUCCEEDED, FAILED, CANCELLED)."""

    id: str = ""
    deployment_id: str = ""
    workflow_id: str = ""
    workflow_name: str = ""
    display_workflow_name: str = ""
    status: str = ""
    start_date: EpochMillis = None
    end_date: EpochMillis = None

    @property
    def is_terminal(self) -> bool:
        return self.status.upper() in ("SUCCEEDED", "FAILED", "CANCELLED")


class Tag(_ApiModel):
    key: str = Field(default="", alias="name")
    value: str = ""


class Application(_ApiModel):
    id: str
    name: str = ""
    tags: list[Tag] = Field(default_factory=list)


class Deployment(_ApiModel):
    """A deployment record of an application environment."""

    id: str
    deployment_username: str = ""
    environment_id: str = ""
    orchestrator_id: str = ""
    orchestrator_deployment_id: str = ""
    location_ids: list[str] = Field(default_factory=list)
    source_id: str = ""
    source_name: str = ""
    source_type: str = ""
    version_id: str = ""
    start_date: EpochMillis = None
    end_date: EpochMillis = None


class Location(_ApiModel):
    id: str
    name: str = ""
    orchestrator_id: str = ""
    infrastructure_type: str = ""


class Orchestrator(_ApiModel):
    id: str
    name: str = ""
    plugin_id: str = ""
    state: str = ""


class LocationMatch(_ApiModel):
    """A location on which a topology can be deployed."""

    location: Location
    orchestrator: Orchestrator | None = None
    ready: bool = False


# =============================================================================
# Catalog
# =============================================================================


class SimpleMark(_ApiModel):
    line: int = 0
    column: int = 0


class ParsingError(_ApiModel):
    """A problem found while parsing an uploaded archive."""

    error_level: str = ""
    error_code: str = ""
    problem: str = ""
    context: str = ""
    note: str = ""
    start_mark: SimpleMark | None = None
    end_mark: SimpleMark | None = None

    def __str__(self) -> str:
        text = f"{self.error_level}: {self.error_code} {self.problem}"
        if self.context:
            text += f". {self.context}"
        if self.note:
            text += f" ({self.note})"
        for label, mark in (("StartMark", self.start_mark), ("EndMark", self.end_mark)):
            if mark is not None and (mark.line or mark.column):
                text += f" {label}[{mark.line}, {mark.column}]"
        return text


class CSAR(_ApiModel):
    """A Cloud Service ARchive registered in the catalog."""

    id: str = ""
    name: str = ""
    version: str = ""
    hash: str = ""
    description: str = ""
    workspace: str = ""
    has_topology: bool = False
    tosca_definitions_version: str = ""


OperationResult.model_rebuild()

__all__ = [
    "OperationKind",
    "OperationStatus",
    "OperationHandle",
    "OperationResult",
    "LogEntry",
    "LogFilter",
    "Event",
    "SearchResult",
    "WorkflowExecution",
    "Tag",
    "Application",
    "Deployment",
    "Location",
    "Orchestrator",
    "LocationMatch",
    "SimpleMark",
    "ParsingError",
    "CSAR",
]
