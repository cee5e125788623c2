"""HTTP implementation of the Alien4Cloud remote services.

Usage:
    async with A4CClient(ClientConfig.from_env()) as client:
        app_id = await client.applications.create_application("myapp", "MyTemplate")
"""

from __future__ import annotations

from typing import Any

import httpx

from ..config import ClientConfig
from .applications import DEFAULT_ENVIRONMENT_NAME, Applications
from .catalog import Catalog
from .deployments import WORKFLOW_REGISTRATION_DELAY, Deployments
from .events import Events
from .logs import Logs
from .transport import RestClient


class A4CClient:
    """Facade over one REST session and the services built on it.

    Attributes:
        applications: ApplicationService implementation
        deployments: DeploymentService implementation
        logs: LogService implementation
        events: EventService implementation
        catalog: CatalogService implementation
    """

    def __init__(
        self,
        config: ClientConfig,
        transport: httpx.AsyncBaseTransport | None = None,
        registration_delay: float = WORKFLOW_REGISTRATION_DELAY,
    ) -> None:
        self.config = config
        self.rest = RestClient(config, transport=transport)
        self.applications = Applications(self.rest)
        self.deployments = Deployments(
            self.rest,
            poll_interval=config.poll_interval_seconds,
            registration_delay=registration_delay,
        )
        self.logs = Logs(self.rest, self.deployments)
        self.events = Events(self.rest)
        self.catalog = Catalog(self.rest)

    async def login(self) -> None:
        await self.rest.login()

    async def logout(self) -> None:
        await self.rest.logout()

    async def aclose(self) -> None:
        """Stop background execution monitors and close the HTTP session."""
        self.deployments.cancel_monitors()
        await self.rest.aclose()

    async def __aenter__(self) -> A4CClient:
        try:
            await self.login()
        except BaseException:
            await self.rest.aclose()
            raise
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


__all__ = [
    "A4CClient",
    "Applications",
    "Catalog",
    "Deployments",
    "Events",
    "Logs",
    "RestClient",
    "DEFAULT_ENVIRONMENT_NAME",
]
