"""Tests for the Copilot access token refresher."""

from unittest.mock import MagicMock

import pytest
from helpers import START_TIME, copilot_token, make_response

from copilot_llm.auth.refresher import AccessTokenRefresher
from copilot_llm.auth.token_store import CredentialStore, StoredCredential
from copilot_llm.config_schema import AuthConfig
from copilot_llm.core.errors import (
    AccessForbiddenError,
    ErrorKind,
    IdentityTokenInvalidError,
    ProtocolError,
)


@pytest.fixture
def refresher(
    auth_config: AuthConfig, store: CredentialStore, mock_http: MagicMock
) -> AccessTokenRefresher:
    """Return a refresher writing to the temporary store."""
    return AccessTokenRefresher(auth_config, store, http=mock_http, retry_delays=[0.0, 0.0])


def test_refresh_returns_and_stores_token(refresher, mock_http, store):
    mock_http.request.return_value = copilot_token("tid=new", int(START_TIME) + 1800)

    assert refresher.refresh("gho_identity") == "tid=new"

    assert store.load() == StoredCredential(
        identity_token="gho_identity",
        access_token="tid=new",
        access_token_expires_at=int(START_TIME) + 1800,
    )


def test_refresh_preserves_identity_token_and_replaces_access_token(
    refresher, mock_http, store, expired_credential
):
    store.save(expired_credential)
    mock_http.request.return_value = copilot_token("tid=new")

    refresher.refresh(expired_credential.identity_token)

    saved = store.load()
    assert saved.identity_token == expired_credential.identity_token
    assert saved.access_token == "tid=new"


def test_refresh_sends_identity_token_as_token_auth(refresher, mock_http):
    mock_http.request.return_value = copilot_token()

    refresher.refresh("gho_identity")

    call = mock_http.request.call_args
    assert call.args == ("GET", "https://api.github.com/copilot_internal/v2/token")
    headers = call.kwargs["headers"]
    assert headers["Authorization"] == "token gho_identity"
    assert headers["Accept"] == "application/json"
    assert "Editor-Version" in headers


def test_401_means_identity_token_invalid(refresher, mock_http, store, expired_credential):
    store.save(expired_credential)
    mock_http.request.return_value = make_response(401, {"message": "Bad credentials"})

    with pytest.raises(IdentityTokenInvalidError) as exc_info:
        refresher.refresh("gho_identity")

    assert exc_info.value.kind is ErrorKind.IDENTITY_TOKEN_INVALID
    assert store.load() == expired_credential


def test_403_means_access_forbidden(refresher, mock_http):
    mock_http.request.return_value = make_response(403, {"message": "Resource not accessible"})

    with pytest.raises(AccessForbiddenError) as exc_info:
        refresher.refresh("gho_identity")

    assert exc_info.value.kind is ErrorKind.ACCESS_FORBIDDEN
    assert mock_http.request.call_count == 1


@pytest.mark.parametrize("status", [404, 429, 500, 503])
def test_other_failures_are_protocol_errors(refresher, mock_http, store, status: int):
    mock_http.request.return_value = make_response(status, text="nope", reason="Error")

    with pytest.raises(ProtocolError) as exc_info:
        refresher.refresh("gho_identity")

    assert exc_info.value.status_code == status
    assert store.load() is None


@pytest.mark.parametrize(
    "payload",
    [
        {"expires_at": 1_700_001_800},
        {"token": "", "expires_at": 1_700_001_800},
        {"token": "tid=new"},
        {"token": "tid=new", "expires_at": "tomorrow"},
    ],
)
def test_malformed_success_body_is_protocol_error(refresher, mock_http, store, payload):
    mock_http.request.return_value = make_response(200, payload)

    with pytest.raises(ProtocolError):
        refresher.refresh("gho_identity")
    assert store.load() is None


def test_non_json_success_body_is_protocol_error(refresher, mock_http):
    mock_http.request.return_value = make_response(200, text="<html/>")

    with pytest.raises(ProtocolError):
        refresher.refresh("gho_identity")
