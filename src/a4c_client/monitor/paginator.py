"""Cursors over the append-only log and event sequences of a deployment.

Each paginator remembers how much of the server sequence the caller has
already consumed and returns only what is new. A failed fetch raises and
leaves the cursor untouched, so the next call resumes from the same place.
"""

from __future__ import annotations

import logging

from ..models import Event, LogEntry, LogFilter
from ..services import EventService, LogService

_logger = logging.getLogger(__name__)

# Number of events requested beyond those already seen
DEFAULT_EVENT_WINDOW = 100000


class LogPaginator:
    """Fetches log entries past a cursor, in server order.

    Attributes:
        cursor: Number of entries already consumed (never decreases)
    """

    def __init__(
        self,
        logs: LogService,
        app_id: str,
        env_id: str,
        filters: LogFilter | None = None,
        cursor: int = 0,
    ) -> None:
        if cursor < 0:
            raise ValueError(f"cursor must be non-negative, got {cursor}")
        self._logs = logs
        self._app_id = app_id
        self._env_id = env_id
        self._filters = filters
        self.cursor = cursor

    async def fetch_new(self) -> list[LogEntry]:
        """Return entries beyond the cursor and advance it by their count.

        Raises:
            RemoteError: If the fetch fails; the cursor is not advanced
        """
        entries, count = await self._logs.get_logs(
            self._app_id, self._env_id, self._filters, self.cursor
        )
        if count <= 0:
            return []
        self.cursor += count
        _logger.debug("Log cursor of %s/%s at %d", self._app_id, self._env_id, self.cursor)
        return list(entries[:count])


class EventPaginator:
    """Fetches events emitted since the last fetch, oldest first.

    The server returns events newest first together with the total number
    of events. Only the ``total - seen`` newest events of a batch are new;
    they are reversed to restore emission order.

    Attributes:
        seen: Total number of events already reported
    """

    def __init__(
        self,
        events: EventService,
        env_id: str,
        seen: int = 0,
        window: int = DEFAULT_EVENT_WINDOW,
    ) -> None:
        if seen < 0:
            raise ValueError(f"seen must be non-negative, got {seen}")
        self._events = events
        self._env_id = env_id
        self._window = window
        self.seen = seen

    async def prime(self) -> int:
        """Skip every event emitted so far and return their number."""
        _, total = await self._events.get_events(self._env_id, 0, 1)
        self.seen = max(self.seen, total)
        return self.seen

    async def fetch_new(self) -> list[Event]:
        """Return events emitted since the last fetch, in chronological order.

        Raises:
            RemoteError: If the fetch fails; ``seen`` is not advanced
        """
        batch, total = await self._events.get_events(self._env_id, 0, self.seen + self._window)
        new_count = min(max(total - self.seen, 0), len(batch))
        self.seen = max(self.seen, total)
        if new_count == 0:
            return []
        return list(reversed(batch[:new_count]))


__all__ = ["LogPaginator", "EventPaginator", "DEFAULT_EVENT_WINDOW"]
