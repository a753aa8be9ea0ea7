"""File-backed credential store for the GitHub identity token and Copilot access token.

The credential is a single JSON document written atomically (temp file plus
rename) with mode 600. Missing or corrupt files read back as "no credential",
so a damaged cache only costs a fresh login.

Usage:
    from copilot_llm.auth.token_store import CredentialStore, StoredCredential

    store = CredentialStore(default_token_store_path())
    credential = store.load()
    if credential is None or store.is_expired(credential):
        ...
"""

import os
import stat
import tempfile
import threading
import time
from collections.abc import Callable, Mapping
from pathlib import Path

from pydantic import BaseModel, ConfigDict, StrictInt, StrictStr, ValidationError

from copilot_llm.config import default_config_dir
from copilot_llm.core.logging import get_logger

logger = get_logger(__name__)

# Refresh this long before the access token actually expires
DEFAULT_EXPIRY_SKEW_SECONDS = 300


class StoredCredential(BaseModel):
    """The persisted credential record.

    Attributes:
        identity_token: Long-lived GitHub OAuth token, only used to mint access
            tokens. May be empty, in which case there is no refresh path.
        access_token: Short-lived Copilot bearer token
        access_token_expires_at: Access token expiry (unix seconds)
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    identity_token: StrictStr
    access_token: StrictStr
    access_token_expires_at: StrictInt


def default_token_store_path(env: Mapping[str, str] | None = None) -> Path:
    """Return the default credential file path (``<config dir>/auth.json``)."""
    return default_config_dir(env) / "auth.json"


class CredentialStore:
    """Owns the credential file.

    Other components get snapshots from load() and hand back whole records to
    save(); nothing mutates the file in place.

    Attributes:
        path: Location of the JSON credential file
        expiry_skew_seconds: Safety margin applied by is_expired()
        lock: Serializes refresh/login sequences for callers sharing this store
    """

    def __init__(
        self,
        path: str | Path,
        expiry_skew_seconds: int = DEFAULT_EXPIRY_SKEW_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.path = Path(path)
        self.expiry_skew_seconds = expiry_skew_seconds
        self.lock = threading.Lock()
        self._clock = clock

    def load(self) -> StoredCredential | None:
        """Read the stored credential.

        Returns:
            The credential, or None if the file is missing, unreadable or invalid
        """
        try:
            content = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Failed to read credential file", path=str(self.path), error=str(e))
            return None

        try:
            return StoredCredential.model_validate_json(content)
        except ValidationError as e:
            logger.warning(
                "Ignoring corrupt credential file",
                path=str(self.path),
                errors=e.error_count(),
            )
            return None

    def save(self, credential: StoredCredential) -> None:
        """Replace the stored credential.

        Writes to a temp file in the target directory, restricts it to the
        owner and renames it over the old file.

        Raises:
            OSError: If the directory cannot be created or the write fails
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(credential.model_dump_json(indent=2))
            os.chmod(tmp_path, stat.S_IRUSR | stat.S_IWUSR)
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

        logger.debug(
            "Credential saved",
            path=str(self.path),
            expires_at=credential.access_token_expires_at,
        )

    def clear(self) -> None:
        """Delete the stored credential. Deleting a missing credential is a no-op."""
        try:
            self.path.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            logger.warning(
                "Failed to delete credential file",
                path=str(self.path),
                error=str(e),
            )
            return
        logger.info("Credential cleared", path=str(self.path))

    def is_expired(self, credential: StoredCredential) -> bool:
        """True when the access token expires within the skew window."""
        threshold = int(self._clock()) + self.expiry_skew_seconds
        return credential.access_token_expires_at < threshold
