"""Deployment log search endpoint."""

from __future__ import annotations

import logging

from ..exceptions import NotFoundError
from ..models import LogEntry, LogFilter
from .deployments import Deployments
from .transport import RestClient, decode_model

_logger = logging.getLogger(__name__)


class Logs:
    """LogService implementation over the REST API.

    Logs are searched on the first deployment of the environment. A first
    request with ``size=1`` reads the number of available entries; a second
    one fetches all of them from ``from_index``, ascending by timestamp.
    """

    def __init__(self, rest: RestClient, deployments: Deployments) -> None:
        self._rest = rest
        self._deployments = deployments

    def _search_body(
        self, deployment_id: str, filters: LogFilter, from_index: int, size: int
    ) -> dict:
        return {
            "from": from_index,
            "size": size,
            "filters": {**filters.to_payload(), "deploymentId": [deployment_id]},
            "sortConfiguration": {"ascending": True, "sortBy": "timestamp"},
        }

    async def get_logs(
        self, app_id: str, env_id: str, filters: LogFilter | None = None, from_index: int = 0
    ) -> tuple[list[LogEntry], int]:
        """Return the log entries after ``from_index`` and their count.

        Raises:
            NotFoundError: If the environment has no deployment
            RemoteError: If a request fails
        """
        filters = filters or LogFilter()
        deployments = await self._deployments.get_deployment_list(app_id, env_id)
        if not deployments:
            raise NotFoundError(
                f"No deployment found for application {app_id!r} environment {env_id!r}, "
                "unable to get logs"
            )
        deployment_id = deployments[0].id
        context = f"Cannot get logs of application {app_id!r} environment {env_id!r}"

        res = await self._rest.request(
            "POST",
            "/deployment/logs/search",
            json=self._search_body(deployment_id, filters, from_index, 1),
            context=context,
        )
        total = ((res or {}).get("data") or {}).get("totalResults") or 0
        if total <= 0:
            return [], 0

        res = await self._rest.request(
            "POST",
            "/deployment/logs/search",
            json=self._search_body(deployment_id, filters, from_index, total),
            context=context,
        )
        data = (res or {}).get("data") or {}
        entries = [decode_model(LogEntry, e, context) for e in data.get("data") or []]
        _logger.debug("Fetched %d log entries from index %d", len(entries), from_index)
        return entries, len(entries)


__all__ = ["Logs"]
