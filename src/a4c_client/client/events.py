"""Deployment event feed endpoint."""

from __future__ import annotations

from ..models import Event
from .transport import RestClient, decode_model


class Events:
    """EventService implementation over the REST API."""

    def __init__(self, rest: RestClient) -> None:
        self._rest = rest

    async def get_events(
        self, env_id: str, from_index: int = 0, size: int = 1
    ) -> tuple[list[Event], int]:
        """Return events of an environment and the total number of events.

        Events are sorted by date in descending order (newest first).
        """
        res = await self._rest.request(
            "GET",
            f"/deployments/{env_id}/events",
            params={"from": from_index, "size": size},
            context=f"Cannot get events of environment {env_id!r}",
        )
        data = (res or {}).get("data") or {}
        events = [decode_model(Event, e) for e in data.get("data") or []]
        return events, data.get("totalResults") or 0


__all__ = ["Events"]
