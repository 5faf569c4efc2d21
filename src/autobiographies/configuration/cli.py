"""CLI commands for managing the service configuration."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from autobiographies.configuration.settings import (
    DEFAULT_CONFIG_PATH,
    SecretStore,
    Settings,
    default_settings,
    load_settings,
    mail_secret_key,
    save_settings,
)
from autobiographies.errors import AutobiographiesError
from autobiographies.errors.user_messages import format_error_for_cli


console = Console()
config_app = typer.Typer(help="Manage the service configuration")


@config_app.command("init")
def init_config(
    config_path: Path = typer.Option(DEFAULT_CONFIG_PATH, "--path", help="Path to config file"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file"),
    address: Optional[str] = typer.Option(None, help="Service mailbox address"),
    imap_host: Optional[str] = typer.Option(None, help="IMAP hostname"),
    smtp_host: Optional[str] = typer.Option(None, help="SMTP hostname"),
    password: Optional[str] = typer.Option(
        None, help="Mail password, stored in the system keyring"
    ),
) -> None:
    """Write a configuration template."""

    config_path = config_path.expanduser()
    if config_path.exists() and not force:
        console.print(
            f"[red]{config_path} already exists; use --force to overwrite[/red]"
        )
        raise typer.Exit(1)

    payload = default_settings().model_dump(mode="python")
    if address:
        payload["mail"]["address"] = address
    if imap_host:
        payload["mail"]["imap_host"] = imap_host
    if smtp_host:
        payload["mail"]["smtp_host"] = smtp_host
    payload["mail"]["password"] = None

    try:
        settings = Settings.model_validate(payload)
    except ValueError as exc:
        console.print(f"[red]Invalid value: {exc}[/red]")
        raise typer.Exit(1)

    save_settings(settings, config_path)
    if password:
        SecretStore().set_secret(mail_secret_key(settings.mail.login), password)
        console.print("Mail password stored in the system keyring")

    console.print(f"Configuration initialized at {config_path}")
    typer.echo(_summarize_settings(settings))


@config_app.command("show")
def show_config(
    config_path: Path = typer.Option(DEFAULT_CONFIG_PATH, "--path", help="Path to config"),
) -> None:
    """Display effective configuration with secrets masked."""

    try:
        settings = load_settings(config_path)
    except AutobiographiesError as exc:
        console.print(format_error_for_cli(exc), style="red", markup=False)
        raise typer.Exit(1)
    typer.echo(_summarize_settings(settings))


def _summarize_settings(settings: Settings) -> str:
    data = settings.model_dump(mode="json")
    if data["mail"].get("password") is not None:
        data["mail"]["password"] = "**********"
    return json.dumps(data, indent=2)


__all__ = ["config_app"]
