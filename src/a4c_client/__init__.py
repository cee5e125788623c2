"""a4c-client - async client for the Alien4Cloud REST API.

Starts deployments, undeployments and workflow executions on an
Alien4Cloud server and follows them to completion, streaming their logs
or events as they are emitted.

Key components:
    - A4CClient: HTTP implementation of the remote services
    - OperationMonitor: Blocking and callback-driven wait-for-completion
    - ClientConfig: Connection settings (env vars, YAML file)
    - CLI: deploy, undeploy, run-workflow, status, logs, upload-csar

Quick start:
    export A4C_URL=http://a4c.example.com:8088 A4C_USER=admin A4C_PASSWORD=...

    a4c deploy myapp --template MyTopology
    a4c run-workflow myapp stop --events
    a4c undeploy myapp --delete --yes
"""

from .client import A4CClient
from .config import ClientConfig
from .exceptions import (
    A4CError,
    AuthenticationError,
    ContentError,
    NotFoundError,
    OperationFailed,
    OperationTimeout,
    RemoteError,
)
from .models import OperationHandle, OperationKind, OperationResult, OperationStatus
from .monitor import OperationMonitor

__version__ = "0.3.0"

__all__ = [
    "A4CClient",
    "ClientConfig",
    "OperationMonitor",
    "OperationHandle",
    "OperationKind",
    "OperationResult",
    "OperationStatus",
    "A4CError",
    "RemoteError",
    "NotFoundError",
    "AuthenticationError",
    "OperationFailed",
    "OperationTimeout",
    "ContentError",
    "__version__",
]
