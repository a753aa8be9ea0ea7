"""Custom exception types for copilot-llm.

Every error carries a stable ``kind`` so callers can branch on the failure
class without comparing message strings. Messages follow the same shape:
- What failed (specific operation or endpoint)
- Why it failed (status code, provider error code)
- How to fix it (actionable guidance)
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Stable identifiers for each failure class."""

    PROTOCOL_ERROR = "PROTOCOL_ERROR"
    AUTH_DENIED = "AUTH_DENIED"
    AUTH_TIMEOUT = "AUTH_TIMEOUT"
    AUTH_CANCELLED = "AUTH_CANCELLED"
    IDENTITY_TOKEN_INVALID = "IDENTITY_TOKEN_INVALID"
    ACCESS_FORBIDDEN = "ACCESS_FORBIDDEN"
    SDK_UNAVAILABLE = "SDK_UNAVAILABLE"
    CONFIG_ERROR = "CONFIG_ERROR"


class CopilotLLMError(Exception):
    """Base exception for all copilot-llm errors."""

    kind: ErrorKind = ErrorKind.PROTOCOL_ERROR

    def __str__(self) -> str:
        return f"[{self.kind.value}] {super().__str__()}"


class ProtocolError(CopilotLLMError):
    """Raised on an unexpected HTTP status or malformed response.

    Attributes:
        status_code: HTTP status code, if a response was received
        error_code: OAuth ``error`` value from the provider (if any)
        error_description: OAuth ``error_description`` from the provider (if any)
    """

    kind = ErrorKind.PROTOCOL_ERROR

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_code: str | None = None,
        error_description: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code
        self.error_description = error_description


class AuthDeniedError(CopilotLLMError):
    """Raised when the user declines the device authorization request."""

    kind = ErrorKind.AUTH_DENIED


class AuthTimeoutError(CopilotLLMError):
    """Raised when the device code expires before the user approves it.

    The flow cannot be resumed; the caller must start a new attempt.
    """

    kind = ErrorKind.AUTH_TIMEOUT


class AuthCancelledError(CopilotLLMError):
    """Raised when a login attempt is aborted by an external cancellation signal."""

    kind = ErrorKind.AUTH_CANCELLED


class IdentityTokenInvalidError(CopilotLLMError):
    """Raised when GitHub rejects the stored identity token (HTTP 401).

    The session orchestrator recovers from this by running the device flow again.
    """

    kind = ErrorKind.IDENTITY_TOKEN_INVALID


class AccessForbiddenError(CopilotLLMError):
    """Raised when the identity is valid but lacks a Copilot entitlement (HTTP 403).

    Re-authenticating will not help, so this is never retried.
    """

    kind = ErrorKind.ACCESS_FORBIDDEN


class SdkUnavailableError(CopilotLLMError):
    """Raised when optional Copilot tooling (gh / copilot CLI) is missing."""

    kind = ErrorKind.SDK_UNAVAILABLE


class ConfigLoadError(CopilotLLMError):
    """Raised when config.yaml cannot be loaded (file not found, YAML parse error)."""

    kind = ErrorKind.CONFIG_ERROR


class ConfigValidationError(CopilotLLMError):
    """Raised when config.yaml fails Pydantic validation.

    Includes specific field errors with actionable messages.
    """

    kind = ErrorKind.CONFIG_ERROR
