"""Detection of the optional GitHub tooling used by SDK-based integrations."""

import shutil
from collections.abc import Callable

from copilot_llm.core.errors import SdkUnavailableError
from copilot_llm.core.logging import get_logger

logger = get_logger(__name__)

SUPPORTED_CLIS = ("gh", "copilot")


def find_copilot_cli(which: Callable[[str], str | None] = shutil.which) -> dict[str, str]:
    """Return the supported CLIs found on PATH, mapped to their locations."""
    found = {}
    for name in SUPPORTED_CLIS:
        location = which(name)
        if location:
            found[name] = location
    return found


def check_cli_available(which: Callable[[str], str | None] = shutil.which) -> dict[str, str]:
    """Ensure at least one of the gh / copilot CLIs is installed.

    Returns:
        Mapping of CLI name to path for every CLI found

    Raises:
        SdkUnavailableError: If neither CLI is on PATH
    """
    found = find_copilot_cli(which)
    if not found:
        logger.warning("No GitHub CLI found on PATH", looked_for=list(SUPPORTED_CLIS))
        raise SdkUnavailableError(
            "Neither `gh` nor `copilot` CLI found in PATH.\n"
            "Install the GitHub CLI: https://cli.github.com\n"
            "Then authenticate: gh auth login\n"
            "Or install the Copilot CLI: npm install -g @github/copilot"
        )
    logger.debug("GitHub CLI tooling found", clis=found)
    return found
