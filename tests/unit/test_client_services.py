"""Tests for the HTTP service implementations against canned server responses."""

import asyncio
import json

import httpx
import pytest
from pydantic import ValidationError

from a4c_client.client import A4CClient
from a4c_client.client.transport import API_PREFIX
from a4c_client.config import ClientConfig
from a4c_client.exceptions import ContentError, NotFoundError, OperationTimeout, RemoteError
from a4c_client.models import LogFilter


def _run(coro):
    """Helper to run async coroutines in tests."""
    return asyncio.run(coro)


class _Server:
    """Routes requests to canned responses and records them.

    Routes map ``(method, path below the API prefix)`` to a JSON payload or
    to a callable returning an ``httpx.Response``.
    """

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        path = request.url.path.removeprefix(API_PREFIX)
        route = self.routes.get((request.method, path))
        if route is None:
            return httpx.Response(404, json={"error": {"code": 404, "message": f"no {path}"}})
        if callable(route):
            return route(request)
        return httpx.Response(200, json=route)

    def bodies(self, method, path):
        return [
            json.loads(r.content)
            for r in self.requests
            if r.method == method and r.url.path == API_PREFIX + path
        ]


def _client(server, **config):
    config.setdefault("poll_interval_seconds", 0)
    return A4CClient(
        ClientConfig(**config), transport=httpx.MockTransport(server), registration_delay=0
    )


async def _with_client(server, action, **config):
    client = _client(server, **config)
    try:
        return await action(client)
    finally:
        await client.aclose()


# =============================================================================
# Applications
# =============================================================================


class TestApplications:
    """Tests for application endpoints."""

    def test_create_application(self):
        server = _Server(
            {
                ("POST", "/catalog/topologies/search"): {
                    "data": {"totalResults": 1, "data": [{"id": "MyTemplate:1.0"}]}
                },
                ("POST", "/applications"): {"data": "myapp"},
            }
        )
        app_id = _run(
            _with_client(server, lambda c: c.applications.create_application("myapp", "MyTemplate"))
        )
        assert app_id == "myapp"
        assert server.bodies("POST", "/applications") == [
            {"name": "myapp", "archiveName": "myapp", "topologyTemplateVersionId": "MyTemplate:1.0"}
        ]

    def test_create_application_unknown_template(self):
        server = _Server(
            {("POST", "/catalog/topologies/search"): {"data": {"totalResults": 0, "data": []}}}
        )
        with pytest.raises(NotFoundError, match="topology template does not exist"):
            _run(_with_client(server, lambda c: c.applications.create_application("a", "Nope")))

    def test_get_environment_id(self):
        server = _Server(
            {
                ("POST", "/applications/myapp/environments/search"): {
                    "data": {
                        "data": [
                            {"id": "env-dev", "name": "Dev"},
                            {"id": "env-1", "name": "Environment"},
                        ]
                    }
                }
            }
        )
        env_id = _run(_with_client(server, lambda c: c.applications.get_environment_id("myapp")))
        assert env_id == "env-1"

    def test_get_environment_id_missing(self):
        server = _Server(
            {("POST", "/applications/myapp/environments/search"): {"data": {"data": []}}}
        )
        with pytest.raises(NotFoundError, match="environment"):
            _run(_with_client(server, lambda c: c.applications.get_environment_id("myapp")))

    def test_application_exists(self):
        server = _Server({("GET", "/applications/myapp"): {"data": {"id": "myapp"}}})
        assert _run(_with_client(server, lambda c: c.applications.application_exists("myapp")))
        assert not _run(_with_client(server, lambda c: c.applications.application_exists("other")))

    def test_get_application(self):
        server = _Server(
            {
                ("GET", "/applications/myapp"): {
                    "data": {"id": "myapp", "name": "My App", "tags": [{"name": "team", "value": "ops"}]}
                }
            }
        )
        app = _run(_with_client(server, lambda c: c.applications.get_application("myapp")))
        assert app.name == "My App"
        assert app.tags[0].key == "team"

    def test_delete_application(self):
        server = _Server({("DELETE", "/applications/myapp"): {"data": True}})
        _run(_with_client(server, lambda c: c.applications.delete_application("myapp")))
        assert [r.method for r in server.requests] == ["DELETE"]


# =============================================================================
# Deployments
# =============================================================================


_APP_ENV = "/applications/myapp/environments/env-1"

_LOCATIONS = {
    "data": [
        {
            "location": {"id": "loc-1", "name": "openstack", "orchestratorId": "orch-1"},
            "orchestrator": {"id": "orch-1", "name": "yorc"},
            "ready": True,
        },
        {
            "location": {"id": "loc-2", "name": "slurm", "orchestratorId": "orch-1"},
            "ready": True,
        },
    ]
}


def _deploy_routes():
    return {
        ("GET", f"{_APP_ENV}/topology"): {"data": "topo-1"},
        ("GET", "/topologies/topo-1/locations"): _LOCATIONS,
        ("POST", f"{_APP_ENV}/deployment-topology/location-policies"): {},
        ("POST", "/applications/deployment"): {},
    }


class TestDeploy:
    """Tests for deploy and undeploy."""

    def test_deploy_on_first_location(self):
        server = _Server(_deploy_routes())
        _run(_with_client(server, lambda c: c.deployments.deploy_application("myapp", "env-1")))
        policies = server.bodies("POST", f"{_APP_ENV}/deployment-topology/location-policies")
        assert policies == [{"groupsToLocations": {"_A4C_ALL": "loc-1"}, "orchestratorId": "orch-1"}]
        assert server.bodies("POST", "/applications/deployment") == [
            {"applicationEnvironmentId": "env-1", "applicationId": "myapp"}
        ]

    def test_deploy_on_named_location(self):
        server = _Server(_deploy_routes())
        _run(
            _with_client(
                server, lambda c: c.deployments.deploy_application("myapp", "env-1", "slurm")
            )
        )
        policies = server.bodies("POST", f"{_APP_ENV}/deployment-topology/location-policies")
        assert policies[0]["groupsToLocations"] == {"_A4C_ALL": "loc-2"}

    def test_deploy_unknown_location_sends_nothing(self):
        server = _Server(_deploy_routes())
        with pytest.raises(NotFoundError, match="'aws' not found"):
            _run(
                _with_client(
                    server, lambda c: c.deployments.deploy_application("myapp", "env-1", "aws")
                )
            )
        assert server.bodies("POST", "/applications/deployment") == []

    def test_deploy_error_propagates(self):
        routes = _deploy_routes()
        routes[("POST", "/applications/deployment")] = lambda r: httpx.Response(
            500, json={"error": {"code": 500, "message": "orchestrator disabled"}}
        )
        with pytest.raises(RemoteError, match="orchestrator disabled"):
            _run(
                _with_client(
                    _Server(routes), lambda c: c.deployments.deploy_application("myapp", "env-1")
                )
            )

    def test_undeploy(self):
        server = _Server({("DELETE", f"{_APP_ENV}/deployment"): {}})
        _run(_with_client(server, lambda c: c.deployments.undeploy_application("myapp", "env-1")))
        assert len(server.requests) == 1


class TestDeploymentStatus:
    """Tests for deployment status queries."""

    def test_status_of_active_deployment(self):
        server = _Server(
            {
                ("GET", f"{_APP_ENV}/active-deployment-monitored"): {
                    "data": {"deployment": {"id": "dep-1"}}
                },
                ("GET", "/deployments/dep-1/status"): {"data": "DEPLOYMENT_IN_PROGRESS"},
            }
        )
        status = _run(
            _with_client(server, lambda c: c.deployments.get_deployment_status("myapp", "env-1"))
        )
        assert status == "DEPLOYMENT_IN_PROGRESS"

    def test_no_active_deployment_is_undeployed(self):
        server = _Server({("GET", f"{_APP_ENV}/active-deployment-monitored"): {"data": None}})
        status = _run(
            _with_client(server, lambda c: c.deployments.get_deployment_status("myapp", "env-1"))
        )
        assert status == "undeployed"

    def test_wait_until_state_is(self):
        statuses = iter(["DEPLOYMENT_IN_PROGRESS", "DEPLOYED"])
        server = _Server(
            {
                ("GET", f"{_APP_ENV}/active-deployment-monitored"): {
                    "data": {"deployment": {"id": "dep-1"}}
                },
                ("GET", "/deployments/dep-1/status"): lambda r: httpx.Response(
                    200, json={"data": next(statuses)}
                ),
            }
        )
        status = _run(
            _with_client(
                server,
                lambda c: c.deployments.wait_until_state_is(
                    "myapp", "env-1", "DEPLOYED", "FAILURE", interval=0
                ),
            )
        )
        assert status == "DEPLOYED"

    def test_wait_until_state_is_requires_statuses(self):
        with pytest.raises(ValueError, match="at least one status"):
            _run(
                _with_client(
                    _Server({}), lambda c: c.deployments.wait_until_state_is("myapp", "env-1")
                )
            )

    def test_deployment_list(self):
        server = _Server(
            {
                ("GET", "/deployments/search"): {
                    "data": {
                        "data": [
                            {"deployment": {"id": "dep-2", "environmentId": "env-1"}},
                            {"deployment": {"id": "dep-1", "environmentId": "env-1"}},
                        ]
                    }
                }
            }
        )
        deployments = _run(
            _with_client(server, lambda c: c.deployments.get_deployment_list("myapp", "env-1"))
        )
        assert [d.id for d in deployments] == ["dep-2", "dep-1"]
        assert server.requests[0].url.params["environmentId"] == "env-1"


class TestOutputs:
    """Tests for runtime attributes."""

    _INFORMATIONS = {
        "data": {
            "Compute": {
                "0": {"state": "started", "attributes": {"ip_address": "10.0.0.1", "os": "linux"}}
            }
        }
    }

    def test_output_attributes(self):
        server = _Server(
            {
                ("GET", "/runtime/myapp/environment/env-1/topology"): {
                    "data": {"topology": {"outputAttributes": {"Compute": ["ip_address"]}}}
                }
            }
        )
        outputs = _run(
            _with_client(server, lambda c: c.deployments.get_output_attributes("myapp", "env-1"))
        )
        assert outputs == {"Compute": ["ip_address"]}

    def test_attributes_value(self):
        server = _Server({("GET", f"{_APP_ENV}/deployment/informations"): self._INFORMATIONS})
        values = _run(
            _with_client(
                server,
                lambda c: c.deployments.get_attributes_value(
                    "myapp", "env-1", "Compute", ["ip_address", "missing"]
                ),
            )
        )
        assert values == {"ip_address": "10.0.0.1"}

    def test_node_status(self):
        server = _Server({("GET", f"{_APP_ENV}/deployment/informations"): self._INFORMATIONS})
        state = _run(
            _with_client(server, lambda c: c.deployments.get_node_status("myapp", "env-1", "Compute"))
        )
        assert state == "started"

    def test_node_status_unknown_node(self):
        server = _Server({("GET", f"{_APP_ENV}/deployment/informations"): self._INFORMATIONS})
        with pytest.raises(NotFoundError, match="Database"):
            _run(
                _with_client(
                    server, lambda c: c.deployments.get_node_status("myapp", "env-1", "Database")
                )
            )


# =============================================================================
# Workflows
# =============================================================================


def _execution(status, execution_id="exec-1"):
    return {"id": execution_id, "workflowName": "stop", "status": status}


def _workflow_routes(statuses):
    remaining = iter(statuses)
    last = {"status": statuses[-1]}

    def executions(request):
        status = next(remaining, last["status"])
        return httpx.Response(
            200, json={"data": {"data": [_execution(status)], "totalResults": 1}}
        )

    return {
        ("POST", f"{_APP_ENV}/workflows/stop"): {"data": "exec-1"},
        ("GET", "/executions/search"): executions,
    }


class TestWorkflows:
    """Tests for workflow execution and its background monitoring."""

    def test_run_workflow_async_invokes_callback_once(self):
        server = _Server(_workflow_routes(["RUNNING", "RUNNING", "SUCCEEDED"]))
        calls = []

        async def scenario(client):
            finished = asyncio.Event()

            def callback(execution, error):
                calls.append((execution, error))
                finished.set()

            execution_id = await client.deployments.run_workflow_async(
                "myapp", "env-1", "stop", callback
            )
            await asyncio.wait_for(finished.wait(), 5)
            await asyncio.sleep(0)
            return execution_id

        assert _run(_with_client(server, scenario)) == "exec-1"
        assert len(calls) == 1
        execution, error = calls[0]
        assert error is None
        assert execution.status == "SUCCEEDED"
        search = [r for r in server.requests if r.url.path.endswith("/executions/search")]
        assert len(search) == 3
        assert search[0].url.params["query"] == "exec-1"
        assert search[0].url.params["size"] == "1"

    def test_run_workflow_async_reports_unexpected_count(self):
        server = _Server(
            {
                ("POST", f"{_APP_ENV}/workflows/stop"): {"data": "exec-1"},
                ("GET", "/executions/search"): {"data": {"data": [], "totalResults": 0}},
            }
        )
        calls = []

        async def scenario(client):
            finished = asyncio.Event()

            def callback(execution, error):
                calls.append((execution, error))
                finished.set()

            await client.deployments.run_workflow_async("myapp", "env-1", "stop", callback)
            await asyncio.wait_for(finished.wait(), 5)

        _run(_with_client(server, scenario))
        execution, error = calls[0]
        assert execution is None
        assert isinstance(error, RemoteError)
        assert "expecting 1 execution" in str(error)

    def test_run_workflow_without_execution_id(self):
        server = _Server({("POST", f"{_APP_ENV}/workflows/stop"): {"data": ""}})
        with pytest.raises(RemoteError, match="No execution id"):
            _run(
                _with_client(
                    server,
                    lambda c: c.deployments.run_workflow_async(
                        "myapp", "env-1", "stop", lambda e, err: None
                    ),
                )
            )

    def test_run_workflow_sync(self):
        server = _Server(_workflow_routes(["RUNNING", "FAILED"]))
        execution = _run(
            _with_client(
                server, lambda c: c.deployments.run_workflow("myapp", "env-1", "stop", timeout=5)
            )
        )
        assert execution.status == "FAILED"

    def test_run_workflow_sync_timeout_cancels_monitor(self):
        server = _Server(_workflow_routes(["RUNNING"]))

        async def scenario(client):
            with pytest.raises(OperationTimeout) as exc:
                await client.deployments.run_workflow("myapp", "env-1", "stop", timeout=0.05)
            for _ in range(5):
                await asyncio.sleep(0)
            return exc.value

        error = _run(_with_client(server, scenario, poll_interval_seconds=0.01))
        assert error.handle.execution_id == "exec-1"
        assert error.handle.kind == "workflow-execution"

    def test_last_workflow_execution(self):
        server = _Server(
            {
                ("GET", f"{_APP_ENV}/active-deployment-monitored"): {
                    "data": {"deployment": {"id": "dep-1"}}
                },
                ("GET", "/workflow_execution/dep-1"): {
                    "data": {"execution": _execution("SUCCEEDED")}
                },
            }
        )
        execution = _run(
            _with_client(
                server, lambda c: c.deployments.get_last_workflow_execution("myapp", "env-1")
            )
        )
        assert execution.id == "exec-1"
        assert execution.is_terminal

    @staticmethod
    def _paged_executions(count):
        executions = [{"id": f"exec-{i}", "status": "SUCCEEDED"} for i in range(count)]

        def search(request):
            start = int(request.url.params["from"])
            size = int(request.url.params["size"])
            page = executions[start : start + size]
            return httpx.Response(200, json={"data": {"data": page, "totalResults": count}})

        return _Server({("GET", "/executions/search"): search})

    def test_get_execution_on_second_page(self):
        server = self._paged_executions(60)
        execution = _run(
            _with_client(
                server, lambda c: c.deployments.get_execution("dep-1", "install", "exec-55")
            )
        )
        assert execution.id == "exec-55"
        pages = [(r.url.params["from"], r.url.params["size"]) for r in server.requests]
        assert pages == [("0", "50"), ("50", "60")]
        assert server.requests[0].url.params["query"] == "install"
        assert server.requests[0].url.params["deploymentId"] == "dep-1"

    def test_get_execution_on_first_page(self):
        server = self._paged_executions(3)
        execution = _run(
            _with_client(server, lambda c: c.deployments.get_execution("dep-1", "stop", "exec-2"))
        )
        assert execution.id == "exec-2"
        assert len(server.requests) == 1

    def test_get_execution_not_found_after_paging(self):
        server = self._paged_executions(60)
        with pytest.raises(NotFoundError, match="Found no execution with ID 'exec-99'"):
            _run(
                _with_client(
                    server, lambda c: c.deployments.get_execution("dep-1", "install", "exec-99")
                )
            )
        assert len(server.requests) == 2

    def test_get_execution_not_found_without_executions(self):
        server = self._paged_executions(0)
        with pytest.raises(NotFoundError):
            _run(
                _with_client(server, lambda c: c.deployments.get_execution("dep-1", "stop", "x"))
            )
        assert len(server.requests) == 1

    def test_cancel_execution(self):
        server = _Server({("POST", "/executions/cancel"): {"data": None}})
        _run(_with_client(server, lambda c: c.deployments.cancel_execution("env-1", "exec-1")))
        assert server.bodies("POST", "/executions/cancel") == [
            {"environmentId": "env-1", "executionId": "exec-1"}
        ]

    def test_cancel_execution_rejected(self):
        server = _Server(
            {
                ("POST", "/executions/cancel"): lambda request: httpx.Response(
                    500, json={"error": {"code": 500, "message": "execution already ended"}}
                )
            }
        )
        with pytest.raises(RemoteError, match="Cannot cancel execution 'exec-1'") as exc:
            _run(_with_client(server, lambda c: c.deployments.cancel_execution("env-1", "exec-1")))
        assert exc.value.status_code == 500


# =============================================================================
# Logs, events and catalog
# =============================================================================


def _log_routes(entries):
    def search(request):
        body = json.loads(request.content)
        if body["size"] == 1:
            return httpx.Response(200, json={"data": {"totalResults": len(entries), "data": []}})
        return httpx.Response(200, json={"data": {"totalResults": len(entries), "data": entries}})

    return {
        ("GET", "/deployments/search"): {"data": {"data": [{"deployment": {"id": "dep-1"}}]}},
        ("POST", "/deployment/logs/search"): search,
    }


class TestLogs:
    """Tests for deployment log search."""

    def test_get_logs_two_step_search(self):
        entries = [{"id": f"log-{i}", "content": f"line {i}"} for i in range(3)]
        server = _Server(_log_routes(entries))
        filters = LogFilter(execution_id=["exec-1"])

        logs, count = _run(
            _with_client(server, lambda c: c.logs.get_logs("myapp", "env-1", filters, 5))
        )

        assert count == 3
        assert [e.content for e in logs] == ["line 0", "line 1", "line 2"]
        first, second = server.bodies("POST", "/deployment/logs/search")
        assert first["size"] == 1
        assert second["size"] == 3
        assert second["from"] == 5
        assert second["filters"] == {"executionId": ["exec-1"], "deploymentId": ["dep-1"]}
        assert second["sortConfiguration"] == {"ascending": True, "sortBy": "timestamp"}

    def test_get_logs_nothing_new(self):
        server = _Server(_log_routes([]))
        logs, count = _run(_with_client(server, lambda c: c.logs.get_logs("myapp", "env-1")))
        assert (logs, count) == ([], 0)
        assert len(server.bodies("POST", "/deployment/logs/search")) == 1

    def test_get_logs_without_deployment(self):
        server = _Server({("GET", "/deployments/search"): {"data": {"data": []}}})
        with pytest.raises(NotFoundError, match="No deployment found"):
            _run(_with_client(server, lambda c: c.logs.get_logs("myapp", "env-1")))

    def test_get_logs_null_fields_and_total(self):
        entries = [{"id": "log-0", "workflowId": None, "nodeId": None, "content": "line 0"}]
        server = _Server(_log_routes(entries))
        logs, count = _run(_with_client(server, lambda c: c.logs.get_logs("myapp", "env-1")))
        assert count == 1
        assert logs[0].workflow_id == ""
        assert logs[0].node_id == ""

    def test_get_logs_null_total_means_no_logs(self):
        server = _Server(
            {
                **_log_routes([]),
                ("POST", "/deployment/logs/search"): {"data": {"totalResults": None}},
            }
        )
        logs, count = _run(_with_client(server, lambda c: c.logs.get_logs("myapp", "env-1")))
        assert (logs, count) == ([], 0)


class TestEvents:
    def test_get_events(self):
        server = _Server(
            {
                ("GET", "/deployments/env-1/events"): {
                    "data": {
                        "totalResults": 12,
                        "data": [
                            {"nodeTemplateId": "Welcome", "instanceId": "0", "instanceState": "stopped"},
                            {"nodeTemplateId": "Welcome", "instanceId": "0", "instanceState": "stopping"},
                        ],
                    }
                }
            }
        )
        events, total = _run(_with_client(server, lambda c: c.events.get_events("env-1", 0, 100)))
        assert total == 12
        assert [e.instance_state for e in events] == ["stopped", "stopping"]
        params = server.requests[0].url.params
        assert (params["from"], params["size"]) == ("0", "100")

    def test_get_events_with_null_instance_state(self):
        server = _Server(
            {
                ("GET", "/deployments/env-1/events"): {
                    "data": {
                        "totalResults": None,
                        "data": [{"nodeTemplateId": None, "instanceState": None, "date": None}],
                    }
                }
            }
        )
        events, total = _run(_with_client(server, lambda c: c.events.get_events("env-1")))
        assert total == 0
        assert events[0].instance_state == ""
        assert not events[0].is_instance_state_event

    def test_get_events_undecodable_payload(self):
        server = _Server(
            {
                ("GET", "/deployments/env-1/events"): {
                    "data": {"totalResults": 1, "data": [{"date": "yesterday"}]}
                }
            }
        )
        with pytest.raises(RemoteError, match="unexpected Event payload") as exc:
            _run(_with_client(server, lambda c: c.events.get_events("env-1")))
        assert isinstance(exc.value.__cause__, ValidationError)


class TestCatalog:
    """Tests for CSAR upload."""

    def test_upload(self):
        server = _Server(
            {
                ("POST", "/csars"): {
                    "data": {"csar": {"id": "types:1.0", "name": "types", "version": "1.0"}}
                }
            }
        )
        csar = _run(_with_client(server, lambda c: c.catalog.upload_csar(b"PK\x03\x04")))
        assert csar.id == "types:1.0"
        request = server.requests[0]
        assert request.headers["content-type"].startswith("multipart/form-data")
        assert b'filename="types.zip"' in request.content
        assert "workspace" not in request.url.params

    def test_upload_to_workspace(self):
        server = _Server({("POST", "/csars"): {"data": {"csar": {"id": "types:1.0"}}}})
        _run(_with_client(server, lambda c: c.catalog.upload_csar(b"PK", workspace="team")))
        assert server.requests[0].url.params["workspace"] == "team"

    def test_upload_with_parsing_errors(self):
        server = _Server(
            {
                ("POST", "/csars"): {
                    "data": {
                        "csar": {"id": "types:1.0", "name": "types"},
                        "errors": {
                            "types.yml": [
                                {"errorLevel": "WARNING", "errorCode": "DEPRECATED", "problem": "old"}
                            ]
                        },
                    }
                }
            }
        )
        with pytest.raises(ContentError) as exc:
            _run(_with_client(server, lambda c: c.catalog.upload_csar(b"PK")))
        assert not exc.value.has_critical_errors()
        assert exc.value.csar.name == "types"
        assert "types.yml> WARNING: DEPRECATED old" in str(exc.value)
