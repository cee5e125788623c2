"""Connection and monitoring configuration.

Public API (the "studs"):
    ClientConfig: Configuration model for the Alien4Cloud client
"""

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator

# Data-driven mapping: config field -> environment variable
_ENV_MAP: dict[str, str] = {
    "url": "A4C_URL",
    "user": "A4C_USER",
    "password": "A4C_PASSWORD",
    "ca_file": "A4C_CA_FILE",
    "skip_secure": "A4C_SKIP_SECURE",
    "timeout_seconds": "A4C_TIMEOUT",
    "poll_interval_seconds": "A4C_POLL_INTERVAL",
    "operation_timeout_seconds": "A4C_OPERATION_TIMEOUT",
}

_SCHEME_PATTERN = re.compile(r"^https?://", re.IGNORECASE)


class ClientConfig(BaseModel):
    """Configuration model for the Alien4Cloud client.

    Attributes:
        url: Alien4Cloud base URL (scheme defaults to http)
        user: Login user name
        password: Login password
        ca_file: Certificate authority bundle used to verify TLS
        skip_secure: Disable TLS verification
        timeout_seconds: HTTP request timeout
        poll_interval_seconds: Fixed interval between monitor polls
        operation_timeout_seconds: Optional deadline for a monitored operation
    """

    url: str = Field("http://localhost:8088", description="Alien4Cloud URL")
    user: str = Field("admin", description="User name")
    password: SecretStr = Field(SecretStr("changeme"), description="Password")
    ca_file: str | None = Field(None, description="Certificate authority file")
    skip_secure: bool = Field(False, description="Skip TLS certificate verification")
    timeout_seconds: float = Field(30.0, gt=0, description="HTTP request timeout in seconds")
    poll_interval_seconds: float = Field(5.0, ge=0, description="Monitor polling interval")
    operation_timeout_seconds: float | None = Field(
        None, gt=0, description="Deadline for monitored operations (None = no deadline)"
    )

    @field_validator("url")
    @classmethod
    def normalize_url(cls, v: str) -> str:
        """Strip trailing slashes and default to http:// when no scheme is given."""
        v = v.strip().rstrip("/")
        if not v:
            raise ValueError("url must not be empty")
        if not _SCHEME_PATTERN.match(v):
            v = "http://" + v
        return v

    @model_validator(mode="after")
    def validate_tls(self) -> "ClientConfig":
        """Require a CA file for verified TLS connections."""
        if self.uses_tls and not self.skip_secure and not self.ca_file:
            raise ValueError(
                "ca_file is required for https URLs unless skip_secure is set"
            )
        return self

    @property
    def uses_tls(self) -> bool:
        return self.url.lower().startswith("https://")

    @classmethod
    def from_env(cls, **overrides: Any) -> "ClientConfig":
        """Create ClientConfig from environment variables.

        Environment variables:
            A4C_URL, A4C_USER, A4C_PASSWORD, A4C_CA_FILE, A4C_SKIP_SECURE,
            A4C_TIMEOUT, A4C_POLL_INTERVAL, A4C_OPERATION_TIMEOUT

        Explicit keyword overrides that are not None take precedence.

        Returns:
            ClientConfig instance
        """
        kwargs: dict[str, Any] = {}
        for field, env_var in _ENV_MAP.items():
            value = os.environ.get(env_var)
            if value is not None and value != "":
                kwargs[field] = value
        kwargs.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**kwargs)

    @classmethod
    def from_file(cls, path: Path | str, **overrides: Any) -> "ClientConfig":
        """Create ClientConfig from a YAML file, environment variables filling gaps.

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the file is not a YAML mapping
        """
        path = Path(path)
        with open(path) as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a YAML mapping")

        merged = {k: v for k, v in data.items() if k in cls.model_fields}
        merged.update({k: v for k, v in overrides.items() if v is not None})
        return cls.from_env(**merged)


__all__ = ["ClientConfig"]
