"""Pytest fixtures for copilot-llm tests.

Provides a fake clock, a mocked HTTP session, default auth config and a
temporary credential store.
"""

from pathlib import Path
from unittest.mock import MagicMock

import pytest
import requests
from helpers import FakeClock

from copilot_llm.auth.token_store import CredentialStore, StoredCredential
from copilot_llm.config_schema import AuthConfig


@pytest.fixture
def clock() -> FakeClock:
    """Return a fresh fake clock."""
    return FakeClock()


@pytest.fixture
def auth_config() -> AuthConfig:
    """Return the default auth configuration."""
    return AuthConfig()


@pytest.fixture
def mock_http() -> MagicMock:
    """Return a mock requests.Session; set ``request.side_effect`` per test."""
    return MagicMock(spec=requests.Session)


@pytest.fixture
def store_path(tmp_path: Path) -> Path:
    """Path of the credential file inside a not-yet-existing directory."""
    return tmp_path / "config" / "copilot-llm" / "auth.json"


@pytest.fixture
def store(store_path: Path, clock: FakeClock) -> CredentialStore:
    """Return a CredentialStore driven by the fake clock."""
    return CredentialStore(store_path, clock=clock.time)


@pytest.fixture
def fresh_credential(clock: FakeClock) -> StoredCredential:
    """A credential whose access token is valid for another hour."""
    return StoredCredential(
        identity_token="gho_identity",
        access_token="tid=fresh",
        access_token_expires_at=int(clock.now) + 3600,
    )


@pytest.fixture
def expired_credential(clock: FakeClock) -> StoredCredential:
    """A credential whose access token expired a minute ago."""
    return StoredCredential(
        identity_token="gho_identity",
        access_token="tid=stale",
        access_token_expires_at=int(clock.now) - 60,
    )
