"""Session orchestration: the single entry point for getting a Copilot token.

Decides, from the stored credential, whether to reuse the cached access
token, refresh it with the stored identity token, or run the full device
flow.

Usage:
    from copilot_llm.auth.session import SessionOrchestrator
    from copilot_llm.config import load_config

    orchestrator = SessionOrchestrator.from_config(load_config())

    # Get access token (prompts for device code if needed)
    token = orchestrator.obtain_access_token()
"""

import threading
from concurrent.futures import Future
from pathlib import Path

import requests

from copilot_llm.auth.device_flow import DeviceAuthorizationClient, InteractionMode
from copilot_llm.auth.refresher import AccessTokenRefresher
from copilot_llm.auth.token_store import (
    CredentialStore,
    StoredCredential,
    default_token_store_path,
)
from copilot_llm.config_schema import AppConfig
from copilot_llm.core.errors import IdentityTokenInvalidError
from copilot_llm.core.logging import get_logger

logger = get_logger(__name__)


class SessionOrchestrator:
    """Hands out valid Copilot access tokens.

    At most one refresh or login sequence runs per credential store at a time.
    Callers that arrive while one is in flight receive its outcome, the token
    or the same exception, instead of starting another interactive login.

    Attributes:
        store: Credential store holding the tokens
        device_client: Runs the interactive device flow
        refresher: Mints access tokens from the identity token
    """

    def __init__(
        self,
        store: CredentialStore,
        device_client: DeviceAuthorizationClient,
        refresher: AccessTokenRefresher,
    ):
        self.store = store
        self.device_client = device_client
        self.refresher = refresher
        self._inflight: Future[str] | None = None
        self._inflight_lock = threading.Lock()

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        interaction_mode: InteractionMode | str | None = None,
        http: requests.Session | None = None,
    ) -> "SessionOrchestrator":
        """Build the store, device client and refresher from configuration.

        Args:
            config: Application configuration
            interaction_mode: Overrides config.auth.interaction_mode
            http: Shared requests session (one is created if omitted)
        """
        auth = config.auth
        http = http or requests.Session()
        if auth.token_store_path:
            store_path = Path(auth.token_store_path)
        else:
            store_path = default_token_store_path()
        store = CredentialStore(store_path, expiry_skew_seconds=auth.expiry_skew_seconds)
        return cls(
            store=store,
            device_client=DeviceAuthorizationClient(
                auth, http=http, interaction_mode=interaction_mode
            ),
            refresher=AccessTokenRefresher(auth, store, http=http),
        )

    def obtain_access_token(self) -> str:
        """Return a valid access token, refreshing or logging in as needed.

        Tries, in order:
        1. The cached access token, if not about to expire (no network)
        2. A refresh with the stored identity token
        3. The full device flow followed by a refresh

        Raises:
            CopilotLLMError: Any failure other than a rejected identity token
        """
        credential = self.store.load()
        if self._is_fresh(credential):
            return credential.access_token

        with self._inflight_lock:
            future = self._inflight
            if future is None:
                future = self._inflight = Future()
                owner = True
            else:
                owner = False

        if not owner:
            logger.debug("Waiting for renewal started by a concurrent caller")
            return future.result()

        try:
            token = self._renew_locked()
        except BaseException as e:
            future.set_exception(e)
            raise
        else:
            future.set_result(token)
            return token
        finally:
            with self._inflight_lock:
                self._inflight = None

    def logout(self) -> None:
        """Forget all stored credentials."""
        self.store.clear()

    def is_authenticated(self) -> bool:
        """True if a usable access token or a recoverable identity token is stored.

        Makes no network calls and never starts an interactive login.
        """
        credential = self.store.load()
        if credential is None:
            return False
        return not self.store.is_expired(credential) or bool(credential.identity_token)

    def _is_fresh(self, credential: StoredCredential | None) -> bool:
        return credential is not None and not self.store.is_expired(credential)

    def _renew_locked(self) -> str:
        with self.store.lock:
            # Another orchestrator over the same store may have renewed it meanwhile
            credential = self.store.load()
            if self._is_fresh(credential):
                logger.debug("Using access token renewed by a concurrent caller")
                return credential.access_token
            return self._renew(credential)

    def _renew(self, credential: StoredCredential | None) -> str:
        """Refresh silently if possible, otherwise run the device flow."""
        if credential is not None and credential.identity_token:
            logger.debug("Access token expired, refreshing with stored identity token")
            try:
                return self.refresher.refresh(credential.identity_token)
            except IdentityTokenInvalidError:
                logger.info("Stored identity token rejected, starting device authorization")
        else:
            logger.info("No stored identity token, starting device authorization")

        identity_token = self.device_client.authorize()
        return self.refresher.refresh(identity_token)
