"""Exceptions raised by the client and the operation monitor.

Public API (the "studs"):
    A4CError: Base exception for all client errors
    RemoteError: Transport or server failure on a remote call (fatal)
    NotFoundError: The requested entity does not exist
    AuthenticationError: The server rejected the credentials
    OperationFailed: A monitored operation ended in a failure status
    OperationTimeout: The monitor deadline elapsed before a terminal status
    ContentError: Parsing problems reported on CSAR upload
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import CSAR, OperationHandle, OperationResult, ParsingError


class A4CError(Exception):
    """Base exception for all client errors."""

    pass


class RemoteError(A4CError):
    """A remote call failed at the transport or server level.

    The monitor treats this as fatal: it is propagated immediately and
    never retried.
    """

    def __init__(
        self, message: str, status_code: int | None = None, code: int | None = None
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code


class NotFoundError(RemoteError):
    """The requested application, environment or resource does not exist."""

    pass


class AuthenticationError(RemoteError):
    """The server rejected the login credentials."""

    pass


class OperationFailed(A4CError):
    """A monitored operation reached a failure terminal status.

    The monitor returns failing results instead of raising; this is raised
    by ``OperationResult.raise_for_outcome()`` for callers that prefer it.
    """

    def __init__(self, result: OperationResult) -> None:
        handle = result.handle
        super().__init__(
            f"{handle.kind} of application {handle.application_id!r} "
            f"ended with status {result.status!r}"
        )
        self.result = result


class OperationTimeout(A4CError):
    """The monitor deadline elapsed before the operation reached a terminal status."""

    def __init__(self, handle: OperationHandle, last_status: str | None, deadline: float) -> None:
        super().__init__(
            f"{handle.kind} of application {handle.application_id!r} did not complete "
            f"within {deadline:g}s (last status: {last_status or 'unknown'})"
        )
        self.handle = handle
        self.last_status = last_status


class ContentError(A4CError):
    """A CSAR upload returned parsing problems.

    Problems may be warnings only. Use ``has_critical_errors()`` to decide
    whether the archive was rejected.
    """

    def __init__(self, csar: CSAR, parsing_errors: dict[str, list[ParsingError]]) -> None:
        self.csar = csar
        self.parsing_errors = parsing_errors
        lines = [
            f"{file_name}> {problem}"
            for file_name, problems in parsing_errors.items()
            for problem in problems
        ]
        super().__init__("\n".join(lines))

    def has_critical_errors(self) -> bool:
        return any(
            problem.error_level == "ERROR"
            for problems in self.parsing_errors.values()
            for problem in problems
        )


__all__ = [
    "A4CError",
    "RemoteError",
    "NotFoundError",
    "AuthenticationError",
    "OperationFailed",
    "OperationTimeout",
    "ContentError",
]
