"""Tests for the file-backed credential store."""

import json
import os
import stat
from pathlib import Path

import pytest
from pydantic import ValidationError

from copilot_llm.auth.token_store import (
    CredentialStore,
    StoredCredential,
    default_token_store_path,
)
from helpers import FakeClock

# ---------------------------------------------------------------------------
# load / save / clear
# ---------------------------------------------------------------------------


def test_load_missing_file_returns_none(store: CredentialStore):
    assert store.load() is None


def test_save_then_load_round_trips(store: CredentialStore, fresh_credential: StoredCredential):
    store.save(fresh_credential)
    assert store.load() == fresh_credential


def test_round_trip_with_empty_identity_token(store: CredentialStore):
    credential = StoredCredential(
        identity_token="", access_token="tid=abc", access_token_expires_at=1_700_003_600
    )
    store.save(credential)
    assert store.load() == credential


def test_save_creates_missing_directories(store: CredentialStore, fresh_credential):
    assert not store.path.parent.exists()
    store.save(fresh_credential)
    assert store.path.exists()


def test_saved_file_contains_exactly_the_credential_fields(store, fresh_credential):
    store.save(fresh_credential)
    data = json.loads(store.path.read_text())
    assert data == {
        "identity_token": "gho_identity",
        "access_token": "tid=fresh",
        "access_token_expires_at": fresh_credential.access_token_expires_at,
    }


@pytest.mark.skipif(os.name != "posix", reason="POSIX permissions only")
def test_saved_file_is_owner_only(store, fresh_credential):
    store.save(fresh_credential)
    mode = stat.S_IMODE(store.path.stat().st_mode)
    assert mode == stat.S_IRUSR | stat.S_IWUSR


def test_save_replaces_previous_record_and_leaves_no_temp_files(store, fresh_credential):
    store.save(fresh_credential)
    replacement = fresh_credential.model_copy(update={"access_token": "tid=second"})
    store.save(replacement)

    assert store.load().access_token == "tid=second"
    assert [p.name for p in store.path.parent.iterdir()] == ["auth.json"]


@pytest.mark.parametrize(
    "content",
    [
        b"",
        b"{not json",
        b"[]",
        b'{"access_token": "tid", "access_token_expires_at": 1}',
        b'{"identity_token": "g", "access_token": "tid", "access_token_expires_at": "soon"}',
        b'{"identity_token": null, "access_token": "tid", "access_token_expires_at": 1}',
        b'\xff\xfe{"identity_token": "x"}',
    ],
)
def test_corrupt_or_incomplete_file_reads_as_no_credential(store: CredentialStore, content: bytes):
    store.path.parent.mkdir(parents=True)
    store.path.write_bytes(content)
    assert store.load() is None


def test_clear_removes_credential(store, fresh_credential):
    store.save(fresh_credential)
    store.clear()
    assert store.load() is None
    assert not store.path.exists()


def test_clear_is_idempotent(store: CredentialStore):
    store.clear()
    store.clear()
    assert store.load() is None


def test_credential_is_immutable(fresh_credential: StoredCredential):
    with pytest.raises(ValidationError):
        fresh_credential.access_token = "changed"


# ---------------------------------------------------------------------------
# Expiry
# ---------------------------------------------------------------------------


def _expiring_at(expires_at: int) -> StoredCredential:
    return StoredCredential(
        identity_token="gho", access_token="tid", access_token_expires_at=expires_at
    )


@pytest.mark.parametrize(
    ("offset", "expired"),
    [
        (3600, False),
        (301, False),
        (300, False),
        (299, True),
        (0, True),
        (-60, True),
    ],
)
def test_is_expired_uses_five_minute_skew(
    store: CredentialStore, clock: FakeClock, offset: int, expired: bool
):
    credential = _expiring_at(int(clock.now) + offset)
    assert store.is_expired(credential) is expired


def test_is_expired_follows_the_clock(store: CredentialStore, clock: FakeClock):
    credential = _expiring_at(int(clock.now) + 600)
    assert not store.is_expired(credential)
    clock.advance(301)
    assert store.is_expired(credential)


def test_custom_skew(tmp_path: Path, clock: FakeClock):
    store = CredentialStore(tmp_path / "auth.json", expiry_skew_seconds=0, clock=clock.time)
    assert not store.is_expired(_expiring_at(int(clock.now)))
    assert store.is_expired(_expiring_at(int(clock.now) - 1))


# ---------------------------------------------------------------------------
# Default path
# ---------------------------------------------------------------------------


def test_default_path_honours_xdg_config_home(tmp_path: Path):
    path = default_token_store_path({"XDG_CONFIG_HOME": str(tmp_path)})
    assert path == tmp_path / "copilot-llm" / "auth.json"


def test_default_path_falls_back_to_home_config():
    path = default_token_store_path({})
    assert path == Path.home() / ".config" / "copilot-llm" / "auth.json"
