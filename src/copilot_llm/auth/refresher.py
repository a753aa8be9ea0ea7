"""Exchange a GitHub identity token for a short-lived Copilot access token."""

import requests

from copilot_llm.auth.token_store import CredentialStore, StoredCredential
from copilot_llm.config_schema import AuthConfig
from copilot_llm.core.errors import AccessForbiddenError, IdentityTokenInvalidError, ProtocolError
from copilot_llm.core.http import describe_status, parse_json_object, send_with_retry
from copilot_llm.core.logging import get_logger

logger = get_logger(__name__)

# Copilot's token endpoint only answers clients that identify as an editor plugin
EDITOR_HEADERS = {
    "Editor-Version": "vscode/1.104.1",
    "Editor-Plugin-Version": "copilot-chat/0.26.7",
}


class AccessTokenRefresher:
    """Mints Copilot access tokens and writes them to the credential store.

    Attributes:
        config: Auth configuration (token URL, timeouts, retries)
        store: Credential store receiving each fresh token
    """

    def __init__(
        self,
        config: AuthConfig,
        store: CredentialStore,
        http: requests.Session | None = None,
        retry_delays: list[float] | None = None,
    ):
        self.config = config
        self.store = store
        self.http = http or requests.Session()
        self._retry_delays = retry_delays

    def refresh(self, identity_token: str) -> str:
        """Mint a new access token and persist it alongside the identity token.

        Args:
            identity_token: GitHub OAuth token used as the bearer credential

        Returns:
            The new Copilot access token

        Raises:
            IdentityTokenInvalidError: GitHub rejected the identity token (401)
            AccessForbiddenError: The account has no Copilot entitlement (403)
            ProtocolError: Any other failure status or a malformed body
        """
        operation = "Copilot token request"
        response = send_with_retry(
            self.http,
            "GET",
            self.config.copilot_token_url,
            operation=operation,
            max_retries=self.config.max_retries,
            retry_delays=self._retry_delays,
            timeout=self.config.request_timeout_seconds,
            headers={
                "Authorization": f"token {identity_token}",
                "Accept": "application/json",
                "User-Agent": self.config.user_agent,
                **EDITOR_HEADERS,
            },
        )

        if response.status_code == 401:
            logger.info("Identity token rejected by GitHub")
            raise IdentityTokenInvalidError(
                "GitHub token is no longer valid. Please re-authenticate."
            )
        if response.status_code == 403:
            logger.error("Copilot access forbidden", status_code=403)
            raise AccessForbiddenError(
                "Access forbidden. Make sure this GitHub account has an active "
                "Copilot subscription: https://github.com/settings/copilot"
            )
        if not response.ok:
            logger.error("Copilot token request failed", status_code=response.status_code)
            raise ProtocolError(
                f"Failed to get Copilot token: {describe_status(response)}",
                status_code=response.status_code,
            )

        data = parse_json_object(response, operation)
        token = data.get("token")
        expires_at = data.get("expires_at")
        if not isinstance(token, str) or not token:
            raise ProtocolError(
                "Copilot token response has no 'token' field",
                status_code=response.status_code,
            )
        if not isinstance(expires_at, int) or isinstance(expires_at, bool):
            raise ProtocolError(
                f"Copilot token response has an invalid 'expires_at': {expires_at!r}",
                status_code=response.status_code,
            )

        self.store.save(
            StoredCredential(
                identity_token=identity_token,
                access_token=token,
                access_token_expires_at=expires_at,
            )
        )
        logger.info("Copilot access token refreshed", expires_at=expires_at)
        return token
