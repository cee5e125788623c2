"""Application and environment endpoints."""

from __future__ import annotations

import logging

from ..exceptions import NotFoundError, RemoteError
from ..models import Application
from .transport import RestClient, decode_model, read_response

_logger = logging.getLogger(__name__)

DEFAULT_ENVIRONMENT_NAME = "Environment"


class Applications:
    """ApplicationService implementation over the REST API."""

    def __init__(self, rest: RestClient) -> None:
        self._rest = rest

    async def get_topology_template_id(self, template_name: str) -> str:
        """Return the ID of the latest catalog topology template with this name.

        Raises:
            NotFoundError: If no template matches
        """
        res = await self._rest.request(
            "POST",
            "/catalog/topologies/search",
            json={"query": template_name, "from": 0, "size": 1},
            context=f"Cannot get topology id for template {template_name!r}",
        )
        data = (res or {}).get("data") or {}
        if data.get("totalResults", 0) <= 0 or not data.get("data"):
            raise NotFoundError(f"{template_name!r} topology template does not exist")
        return data["data"][0]["id"]

    async def create_application(self, name: str, template: str) -> str:
        """Create an application from a topology template and return its ID."""
        template_id = await self.get_topology_template_id(template)
        res = await self._rest.request(
            "POST",
            "/applications",
            json={"name": name, "archiveName": name, "topologyTemplateVersionId": template_id},
            context=f"Cannot create application {name!r}",
        )
        app_id = (res or {}).get("data") or ""
        if not app_id:
            raise RemoteError(f"No application id returned on creation of {name!r}")
        _logger.info("Created application %s from template %s", app_id, template)
        return app_id

    async def get_environment_id(
        self, app_id: str, env_name: str = DEFAULT_ENVIRONMENT_NAME
    ) -> str:
        """Return the ID of the named environment of an application.

        Raises:
            NotFoundError: If the application has no such environment
        """
        res = await self._rest.request(
            "POST",
            f"/applications/{app_id}/environments/search",
            json={"from": 0, "size": 0},
            context=f"Cannot get environments of application {app_id!r}",
        )
        environments = ((res or {}).get("data") or {}).get("data") or []
        for env in environments:
            if env.get("name") == env_name:
                return env["id"]
        raise NotFoundError(f"{env_name!r} environment for application {app_id!r} not found")

    async def application_exists(self, app_id: str) -> bool:
        response = await self._rest.send("GET", f"/applications/{app_id}")
        if response.status_code == 404:
            return False
        read_response(response, f"Cannot check if application {app_id!r} exists")
        return True

    async def get_application(self, app_id: str) -> Application:
        res = await self._rest.request(
            "GET", f"/applications/{app_id}", context=f"Cannot get application {app_id!r}"
        )
        return decode_model(Application, (res or {}).get("data") or {"id": app_id})

    async def delete_application(self, app_id: str) -> None:
        await self._rest.request(
            "DELETE", f"/applications/{app_id}", context=f"Cannot delete application {app_id!r}"
        )
        _logger.info("Deleted application %s", app_id)


__all__ = ["Applications", "DEFAULT_ENVIRONMENT_NAME"]
