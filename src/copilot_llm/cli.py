"""Command-line interface for copilot-llm.

Provides commands to log in with the GitHub device flow, inspect and clear
stored credentials, and print a Copilot access token for scripts.

Usage:
    python -m copilot_llm login
    python -m copilot_llm login --mode confirm
    python -m copilot_llm status
    python -m copilot_llm token
    python -m copilot_llm logout
"""

from __future__ import annotations

import sys
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

import click
from rich.console import Console

from copilot_llm.config import validate_config_file
from copilot_llm.core.errors import ConfigLoadError, ConfigValidationError, CopilotLLMError
from copilot_llm.core.logging import configure_logging

if TYPE_CHECKING:
    from copilot_llm.auth.session import SessionOrchestrator

console = Console(stderr=True)


def _build_orchestrator(ctx: click.Context, mode: str | None = None) -> SessionOrchestrator:
    """Load config and build a SessionOrchestrator, exiting with a message on config errors."""
    from copilot_llm.auth.session import SessionOrchestrator
    from copilot_llm.config import load_config

    try:
        config = load_config(ctx.obj.get("config_path"))
    except (ConfigLoadError, ConfigValidationError) as e:
        console.print(f"[red]Config error:[/red] {e}")
        sys.exit(1)

    if not ctx.obj.get("debug"):
        configure_logging(
            log_level=config.logging.level, json_output=config.logging.json_output
        )
    return SessionOrchestrator.from_config(config, interaction_mode=mode)


def _fail(error: CopilotLLMError) -> None:
    console.print(f"\n[red]✗ {error.kind.value}[/red] {error.args[0] if error.args else ''}")
    sys.exit(1)


def _format_expiry(expires_at: int) -> str:
    return datetime.fromtimestamp(expires_at).strftime("%Y-%m-%d %H:%M:%S")


@click.group()
@click.option("--debug/--no-debug", default=False, help="Enable debug logging")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False, path_type=Path),
    default=None,
    help="Path to config file (default: ~/.config/copilot-llm/config.yaml)",
)
@click.pass_context
def cli(ctx: click.Context, debug: bool, config_path: Path | None) -> None:
    """copilot-llm - GitHub Copilot authentication."""
    log_level = "DEBUG" if debug else "WARNING"
    configure_logging(log_level=log_level, json_output=False)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["debug"] = debug


@cli.command("login")
@click.option(
    "--mode",
    type=click.Choice(["poll", "confirm"]),
    default=None,
    help="Wait autonomously (poll) or for Enter before each check (confirm)",
)
@click.option("--force", is_flag=True, help="Discard stored tokens and log in again")
@click.pass_context
def login(ctx: click.Context, mode: str | None, force: bool) -> None:
    """Log in with the GitHub device flow (reuses stored tokens when possible)."""
    orchestrator = _build_orchestrator(ctx, mode)
    if force:
        orchestrator.logout()

    try:
        orchestrator.obtain_access_token()
    except KeyboardInterrupt:
        orchestrator.device_client.cancel()
        console.print("\n[yellow]Cancelled.[/yellow]")
        sys.exit(130)
    except CopilotLLMError as e:
        _fail(e)

    credential = orchestrator.store.load()
    expiry = _format_expiry(credential.access_token_expires_at) if credential else "unknown"
    console.print(f"[green]✓[/green] Logged in. Copilot token valid until [cyan]{expiry}[/cyan]")


@cli.command("logout")
@click.pass_context
def logout(ctx: click.Context) -> None:
    """Remove stored tokens. The next login will re-authenticate."""
    orchestrator = _build_orchestrator(ctx)
    orchestrator.logout()
    console.print("Logged out. Tokens cleared.")


@cli.command("status")
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show whether a usable session is stored, without logging in."""
    orchestrator = _build_orchestrator(ctx)
    store = orchestrator.store
    credential = store.load()

    console.print(f"Credential file: [cyan]{store.path}[/cyan]")
    if not orchestrator.is_authenticated():
        console.print("[yellow]Not authenticated.[/yellow] Run 'copilot-llm login'.")
        sys.exit(1)

    expiry = _format_expiry(credential.access_token_expires_at)
    if store.is_expired(credential):
        console.print(f"Access token: [yellow]expired[/yellow] ({expiry}), refreshes on next use")
    else:
        console.print(f"Access token: [green]valid[/green] until {expiry}")
    has_identity = "stored" if credential.identity_token else "missing"
    console.print(f"GitHub identity token: {has_identity}")


@cli.command("token")
@click.pass_context
def token(ctx: click.Context) -> None:
    """Print a valid Copilot access token to stdout."""
    orchestrator = _build_orchestrator(ctx)
    try:
        access_token = orchestrator.obtain_access_token()
    except KeyboardInterrupt:
        orchestrator.device_client.cancel()
        console.print("\n[yellow]Cancelled.[/yellow]")
        sys.exit(130)
    except CopilotLLMError as e:
        _fail(e)
    click.echo(access_token)


@cli.command("check-tools")
def check_tools() -> None:
    """Check that the gh or copilot CLI is installed."""
    from copilot_llm.auth.tooling import check_cli_available

    try:
        found = check_cli_available()
    except CopilotLLMError as e:
        _fail(e)
    for name, location in found.items():
        console.print(f"[green]✓[/green] {name}: {location}")


@cli.command("validate-config")
@click.pass_context
def validate_config(ctx: click.Context) -> None:
    """Validate the configuration file."""
    config_path = ctx.obj.get("config_path")
    console.print(f"Validating config: [cyan]{config_path or '(default location)'}[/cyan]")

    is_valid, message = validate_config_file(config_path)

    if is_valid:
        console.print(f"\n[green]✓[/green] {message}")
        sys.exit(0)
    else:
        console.print(f"\n[red]✗[/red] {message}")
        sys.exit(1)


def main() -> None:
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
