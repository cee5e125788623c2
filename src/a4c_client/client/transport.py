"""HTTP transport for the Alien4Cloud REST API.

Owns the ``httpx.AsyncClient`` and its cookie session, logs in, replays a
request once after re-login when the session expired (HTTP 403), and
decodes the ``{"data": ..., "error": {"code", "message"}}`` envelope.

Public API (the "studs"):
    RestClient: Session-aware async HTTP client
    read_response: Decode a response or raise RemoteError
    decode_model: Validate a payload into a model or raise RemoteError
    API_PREFIX: Path prefix of the REST API
"""

from __future__ import annotations

import logging
import ssl
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from ..config import ClientConfig
from ..exceptions import AuthenticationError, NotFoundError, RemoteError

_logger = logging.getLogger(__name__)

API_PREFIX = "/rest/latest"

_M = TypeVar("_M", bound=BaseModel)


def _error_message(response: httpx.Response) -> tuple[str, int | None]:
    """Extract the server error message and code from an error response."""
    try:
        payload = response.json()
    except ValueError:
        return response.text or response.reason_phrase, None

    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict):
        message = error.get("message") or response.reason_phrase
        return message, error.get("code")
    return response.reason_phrase, None


def read_response(response: httpx.Response, context: str = "") -> Any:
    """Decode a JSON response body.

    Args:
        response: Response to decode
        context: Prefix for error messages (what was being attempted)

    Returns:
        Decoded JSON payload, or None for an empty body

    Raises:
        NotFoundError: On HTTP 404
        RemoteError: On any other status >= 400 or an undecodable body
    """
    prefix = f"{context}: " if context else ""
    if response.status_code >= 400:
        message, code = _error_message(response)
        error_class = NotFoundError if response.status_code == 404 else RemoteError
        raise error_class(
            f"{prefix}{message} (HTTP {response.status_code})",
            status_code=response.status_code,
            code=code,
        )

    if not response.content:
        return None
    try:
        return response.json()
    except ValueError as e:
        raise RemoteError(
            f"{prefix}unable to decode response: {e}", status_code=response.status_code
        ) from e


def decode_model(model: type[_M], payload: Any, context: str = "") -> _M:
    """Validate a decoded payload into ``model``.

    Raises:
        RemoteError: If the payload does not match the model
    """
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        prefix = f"{context}: " if context else ""
        raise RemoteError(f"{prefix}unexpected {model.__name__} payload: {e}") from e


class RestClient:
    """Session-aware async HTTP client for one Alien4Cloud server.

    Usage:
        async with RestClient(config) as rest:
            await rest.login()
            data = await rest.request("GET", "/applications/app")
    """

    def __init__(
        self, config: ClientConfig, transport: httpx.AsyncBaseTransport | None = None
    ) -> None:
        """Initialize the HTTP client.

        Args:
            config: Connection settings
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self._config = config
        self._http = httpx.AsyncClient(
            base_url=config.url,
            headers={"Accept": "application/json"},
            timeout=config.timeout_seconds,
            verify=self._verify(config),
            transport=transport,
            follow_redirects=False,
        )

    @staticmethod
    def _verify(config: ClientConfig) -> ssl.SSLContext | bool:
        if not config.uses_tls:
            return True
        if config.skip_secure:
            return False
        return ssl.create_default_context(cafile=config.ca_file)

    @property
    def config(self) -> ClientConfig:
        return self._config

    async def __aenter__(self) -> RestClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def login(self) -> None:
        """Open a session with form credentials.

        Raises:
            AuthenticationError: If the server rejects the credentials
            RemoteError: On transport failure
        """
        form = {
            "username": self._config.user,
            "password": self._config.password.get_secret_value(),
            "submit": "Login",
        }
        try:
            response = await self._http.post("/login", data=form)
        except httpx.HTTPError as e:
            raise RemoteError(f"Cannot send login request: {e}") from e

        if response.status_code != 200:
            message, code = _error_message(response)
            raise AuthenticationError(
                f"Login failed for user {self._config.user!r}: {message}",
                status_code=response.status_code,
                code=code,
            )
        _logger.debug("Logged in to %s as %s", self._config.url, self._config.user)

    async def logout(self) -> None:
        """Close the session."""
        try:
            response = await self._http.post("/logout")
        except httpx.HTTPError as e:
            raise RemoteError(f"Cannot send logout request: {e}") from e
        read_response(response, "Logout failed")

    async def send(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
        files: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Send a request to the REST API, logging in again once on HTTP 403.

        Args:
            method: HTTP method
            path: Path below the REST API prefix
            json: JSON body
            params: Query parameters
            files: Multipart files

        Returns:
            The raw response (status not checked)

        Raises:
            RemoteError: On transport failure or failed re-login
        """
        url = API_PREFIX + path
        try:
            response = await self._http.request(method, url, json=json, params=params, files=files)
            _logger.debug("%s %s -> %s", method, url, response.status_code)
            if response.status_code == httpx.codes.FORBIDDEN:
                _logger.warning("Session rejected on %s %s, logging in again", method, url)
                await self.login()
                response = await self._http.request(
                    method, url, json=json, params=params, files=files
                )
        except httpx.HTTPError as e:
            raise RemoteError(f"{method} {url} failed: {e}") from e
        return response

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
        files: dict[str, Any] | None = None,
        context: str = "",
    ) -> Any:
        """Send a request and decode its JSON payload.

        Raises:
            NotFoundError: On HTTP 404
            RemoteError: On transport failure or error status
        """
        response = await self.send(method, path, json=json, params=params, files=files)
        return read_response(response, context)


__all__ = ["RestClient", "read_response", "decode_model", "API_PREFIX"]
