"""Authentication module for the GitHub Copilot API.

Provides the GitHub OAuth device flow, Copilot token refresh and a
file-backed credential cache.

Usage:
    from copilot_llm.auth import SessionOrchestrator
    from copilot_llm.config import load_config

    orchestrator = SessionOrchestrator.from_config(load_config())

    token = orchestrator.obtain_access_token()
"""

from copilot_llm.auth.device_flow import (
    DeviceAuthorizationClient,
    DeviceAuthorizationSession,
    DeviceFlowState,
    InteractionMode,
)
from copilot_llm.auth.refresher import AccessTokenRefresher
from copilot_llm.auth.session import SessionOrchestrator
from copilot_llm.auth.token_store import (
    CredentialStore,
    StoredCredential,
    default_token_store_path,
)

__all__ = [
    "AccessTokenRefresher",
    "CredentialStore",
    "DeviceAuthorizationClient",
    "DeviceAuthorizationSession",
    "DeviceFlowState",
    "InteractionMode",
    "SessionOrchestrator",
    "StoredCredential",
    "default_token_store_path",
]
