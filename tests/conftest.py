"""Shared test fixtures."""

import pytest

from a4c_client.config import _ENV_MAP


@pytest.fixture(autouse=True)
def _clear_a4c_environment(monkeypatch):
    """Keep A4C_* variables of the developer shell out of the tests."""
    for env_var in _ENV_MAP.values():
        monkeypatch.delenv(env_var, raising=False)
    yield
