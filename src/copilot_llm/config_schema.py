"""Pydantic configuration schema for copilot-llm.

Every field has a default, so an empty or missing config.yaml produces a
working configuration that talks to github.com.

Usage:
    from copilot_llm.config_schema import AppConfig

    config = AppConfig(**yaml_data)
"""

from typing import Literal

from pydantic import BaseModel, Field, field_validator

# Current schema version - increment when adding new required fields
CURRENT_SCHEMA_VERSION = 1

# Public OAuth app used by the Copilot editor plugins
GITHUB_CLIENT_ID = "Iv1.b507a08c87ecfe98"


class AuthConfig(BaseModel):
    """GitHub device flow and Copilot token settings."""

    client_id: str = Field(
        default=GITHUB_CLIENT_ID,
        description="GitHub OAuth app client ID used for the device flow",
    )
    scope: str = Field(
        default="read:user",
        description="OAuth scope requested for the identity token",
    )
    device_code_url: str = Field(
        default="https://github.com/login/device/code",
        description="Endpoint that issues device and user codes",
    )
    token_url: str = Field(
        default="https://github.com/login/oauth/access_token",
        description="Endpoint polled for the identity token",
    )
    copilot_token_url: str = Field(
        default="https://api.github.com/copilot_internal/v2/token",
        description="Endpoint that mints short-lived Copilot access tokens",
    )
    token_store_path: str | None = Field(
        default=None,
        description="Credential file path (default: ~/.config/copilot-llm/auth.json)",
    )
    interaction_mode: Literal["poll", "confirm"] = Field(
        default="poll",
        description="'poll' waits autonomously, 'confirm' waits for Enter before each check",
    )
    expiry_skew_seconds: int = Field(
        default=300,
        ge=0,
        le=3600,
        description="Treat access tokens as expired this many seconds early",
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        le=300,
        description="Per-request HTTP timeout (seconds)",
    )
    max_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts per request on transient network errors",
    )
    user_agent: str = Field(
        default="copilot-llm/1.0.0",
        description="User-Agent header sent to GitHub",
    )

    @field_validator("client_id")
    @classmethod
    def validate_client_id(cls, v: str) -> str:
        """Reject blank client IDs."""
        if not v or not v.strip():
            raise ValueError("client_id cannot be empty")
        return v.strip()

    @field_validator("token_store_path")
    @classmethod
    def validate_token_store_path(cls, v: str | None) -> str | None:
        """Ensure token store path doesn't contain path traversal."""
        if v is None:
            return v
        if not v.strip():
            raise ValueError("Token store path cannot be empty")
        if ".." in v:
            raise ValueError("Token store path cannot contain '..' (path traversal)")
        return v

    @field_validator("device_code_url", "token_url", "copilot_token_url")
    @classmethod
    def validate_https_url(cls, v: str) -> str:
        """Endpoints must be absolute http(s) URLs."""
        if not v.startswith(("https://", "http://")):
            raise ValueError("URL must start with https:// or http://")
        return v


class LoggingConfig(BaseModel):
    """Log output settings."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING",
        description="Minimum log level (--debug overrides this with DEBUG)",
    )
    json_output: bool = Field(
        default=False,
        description="Emit JSON logs instead of human-readable console output",
    )


class AppConfig(BaseModel):
    """Root configuration model."""

    schema_version: int = Field(
        default=CURRENT_SCHEMA_VERSION,
        ge=1,
        description="Config schema version",
    )
    auth: AuthConfig = Field(default_factory=AuthConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
