"""Configuration loader.

Loads config.yaml, validates it against the Pydantic schema and returns an
AppConfig value. There is no process-wide config object: callers load once
and pass the result to whatever they construct.

Usage:
    from copilot_llm.config import load_config

    config = load_config()
    orchestrator = SessionOrchestrator.from_config(config)
"""

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from copilot_llm.config_schema import CURRENT_SCHEMA_VERSION, AppConfig
from copilot_llm.core.errors import ConfigLoadError, ConfigValidationError
from copilot_llm.core.logging import get_logger

logger = get_logger(__name__)

APP_DIR_NAME = "copilot-llm"
CONFIG_PATH_ENV_VAR = "COPILOT_LLM_CONFIG_PATH"


def default_config_dir(env: Mapping[str, str] | None = None) -> Path:
    """Return the per-user config directory for copilot-llm.

    Honours XDG_CONFIG_HOME, falling back to ~/.config.

    Args:
        env: Environment mapping to consult (default: os.environ)
    """
    env = os.environ if env is None else env
    base = env.get("XDG_CONFIG_HOME")
    if base:
        return Path(base) / APP_DIR_NAME
    return Path.home() / ".config" / APP_DIR_NAME


def _get_config_path(env: Mapping[str, str] | None = None) -> tuple[Path, bool]:
    """Resolve the config path and whether the user asked for it explicitly."""
    env = os.environ if env is None else env
    env_path = env.get(CONFIG_PATH_ENV_VAR)
    if env_path:
        return Path(env_path), True
    return default_config_dir(env) / "config.yaml", False


def _format_validation_errors(error: ValidationError) -> str:
    """Format Pydantic validation errors into actionable messages.

    Args:
        error: Pydantic ValidationError

    Returns:
        Formatted error message with specific field errors
    """
    messages = []
    for err in error.errors():
        # Build field path (e.g., "auth.max_retries")
        field_path = ".".join(str(loc) for loc in err["loc"])
        msg = err["msg"]
        err_type = err["type"]

        if err_type == "missing":
            messages.append(f"  - Missing required field '{field_path}'")
        elif err_type == "string_type":
            messages.append(f"  - Field '{field_path}' must be a string")
        elif err_type == "int_type":
            messages.append(f"  - Field '{field_path}' must be an integer")
        else:
            messages.append(f"  - Field '{field_path}': {msg}")

    return "\n".join(messages)


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load and parse YAML file.

    Args:
        path: Path to YAML file

    Returns:
        Parsed YAML as dictionary

    Raises:
        ConfigLoadError: If the file is unreadable or not a YAML mapping
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigLoadError(f"Failed to read configuration file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigLoadError(f"Failed to parse YAML in {path}:\n{e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigLoadError(
            f"Configuration file must be a YAML mapping, got {type(data).__name__}"
        )
    return data


def _validate_config(data: dict[str, Any], path: Path) -> AppConfig:
    """Validate config data against Pydantic schema.

    Raises:
        ConfigValidationError: If validation fails
    """
    try:
        config = AppConfig(**data)
    except ValidationError as e:
        error_details = _format_validation_errors(e)
        raise ConfigValidationError(
            f"Configuration validation failed for {path}:\n{error_details}"
        ) from e

    if config.schema_version > CURRENT_SCHEMA_VERSION:
        raise ConfigValidationError(
            f"Config schema version {config.schema_version} is newer than "
            f"supported version {CURRENT_SCHEMA_VERSION}. "
            "Please upgrade copilot-llm or downgrade the config."
        )
    return config


def load_config(path: Path | None = None, env: Mapping[str, str] | None = None) -> AppConfig:
    """Load and validate configuration.

    Resolution order: ``path`` argument, then COPILOT_LLM_CONFIG_PATH, then
    ``<config dir>/config.yaml``. Only the last one may be missing, in which
    case the defaults are used.

    Args:
        path: Optional explicit config file path
        env: Environment mapping to consult (default: os.environ)

    Returns:
        Validated AppConfig instance

    Raises:
        ConfigLoadError: If an explicitly requested file is missing or unreadable
        ConfigValidationError: If validation fails
    """
    if path is not None:
        config_path, explicit = Path(path), True
    else:
        config_path, explicit = _get_config_path(env)

    if not config_path.exists():
        if explicit:
            raise ConfigLoadError(
                f"Configuration file not found: {config_path}\n"
                f"Create it, or unset {CONFIG_PATH_ENV_VAR} to use the defaults."
            )
        logger.debug("No configuration file, using defaults", path=str(config_path))
        return AppConfig()

    logger.debug("Loading configuration", path=str(config_path))
    config = _validate_config(_load_yaml(config_path), config_path)
    logger.info(
        "Configuration loaded successfully",
        path=str(config_path),
        schema_version=config.schema_version,
        interaction_mode=config.auth.interaction_mode,
    )
    return config


def validate_config_file(path: Path | None = None) -> tuple[bool, str]:
    """Validate a config file and describe the result.

    Useful for CLI validation commands and testing.

    Returns:
        Tuple of (is_valid, message)
    """
    try:
        config = load_config(path)
    except ConfigLoadError as e:
        return (False, f"Load error: {e}")
    except ConfigValidationError as e:
        return (False, f"Validation error: {e}")

    store_path = config.auth.token_store_path or "(default)"
    return (
        True,
        f"Configuration valid (schema version {config.schema_version})\n"
        f"  - interaction mode: {config.auth.interaction_mode}\n"
        f"  - token store: {store_path}\n"
        f"  - expiry skew: {config.auth.expiry_skew_seconds}s",
    )
