"""CLI commands that run the exchange and inspect its state."""

from __future__ import annotations

import asyncio
import json
import signal
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from autobiographies.configuration.settings import (
    DEFAULT_CONFIG_PATH,
    Settings,
    load_settings,
    resolve_mail_password,
)
from autobiographies.errors import AutobiographiesError
from autobiographies.errors.user_messages import format_error_for_cli
from autobiographies.logging_setup import configure_logging
from autobiographies.mailing import ImapSmtpMailbox, Mailbox
from autobiographies.pairing import PairingStore, active_reviewers
from autobiographies.routing import SubmissionRouter, TickResult
from autobiographies.scheduling import IntervalPoller
from autobiographies.users import Roster

console = Console()


def open_mailbox(settings: Settings) -> Mailbox:
    return ImapSmtpMailbox(settings.mail, resolve_mail_password(settings))


def build_router(settings: Settings) -> SubmissionRouter:
    """Wire the router to the configured roster, mailbox and pairing table."""

    return SubmissionRouter(
        roster=Roster.from_file(settings.storage.roster_path),
        mailbox=open_mailbox(settings),
        store=PairingStore(settings.storage.pairings_path),
        routing=settings.routing,
        autobiographies_dir=settings.storage.autobiographies_dir,
        feedback_dir=settings.storage.feedback_dir,
    )


def run_service(
    config_path: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config", help="Path to config file"),
    interval: Optional[float] = typer.Option(
        None, "--interval", min=0.01, help="Poll interval in minutes (overrides config)"
    ),
) -> None:
    """Poll the mailbox until interrupted."""

    settings = _load_or_exit(config_path)
    configure_logging(settings.storage.log_path)
    try:
        router = build_router(settings)
        router.load()
    except AutobiographiesError as exc:
        _fail(exc)

    if interval is not None:
        settings.poll_interval_minutes = interval
    console.print(f"[bold green]Polling {settings.mail.address} every {settings.poll_interval_minutes:g} minutes[/bold green]")
    console.print("Press Ctrl+C to stop\n")
    asyncio.run(_serve(router, settings.poll_interval_seconds))
    console.print("[bold green]Stopped[/bold green]")


async def _serve(router: SubmissionRouter, poll_interval: float) -> None:
    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()

    def signal_handler(sig, frame):
        console.print("\n[bold yellow]Shutting down, finishing the current round...[/bold yellow]")
        loop.call_soon_threadsafe(shutdown_event.set)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    poller = IntervalPoller(tick=router.tick, poll_interval=poll_interval)
    await poller.start()
    try:
        await shutdown_event.wait()
    finally:
        await poller.stop()


def run_tick(
    config_path: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config", help="Path to config file"),
) -> None:
    """Run a single polling round and print what happened."""

    settings = _load_or_exit(config_path)
    configure_logging(settings.storage.log_path, rotate=False)
    try:
        router = build_router(settings)
        result = router.tick()
    except AutobiographiesError as exc:
        _fail(exc)

    _print_tick(result)
    if result.aborted:
        raise typer.Exit(1)


def show_pairings(
    config_path: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config", help="Path to config file"),
    json_output: bool = typer.Option(False, "--json", help="Emit JSON output"),
) -> None:
    """List every pairing with its status."""

    settings = _load_or_exit(config_path)
    try:
        pairings = PairingStore(settings.storage.pairings_path).load()
    except AutobiographiesError as exc:
        _fail(exc)

    if json_output:
        records = [
            {**p.model_dump(mode="json", exclude_none=True), "status": p.status.value}
            for p in pairings
        ]
        typer.echo(json.dumps(records, indent=2))
        return

    if not pairings:
        console.print("[yellow]No pairings yet[/yellow]")
        return

    table = Table(title=f"Pairings ({len(pairings)} total)")
    table.add_column("Author", style="cyan")
    table.add_column("Reviewer", style="green")
    table.add_column("Status", style="yellow")
    table.add_column("Created", style="magenta")
    for pairing in pairings:
        created = pairing.created_at.strftime("%Y-%m-%d %H:%M") if pairing.created_at else "-"
        table.add_row(pairing.author, pairing.reviewer, pairing.status.value, created)
    console.print(table)


def show_roster(
    config_path: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config", help="Path to config file"),
) -> None:
    """List registered users and whether they are reviewing."""

    settings = _load_or_exit(config_path)
    roster = Roster.from_file(settings.storage.roster_path)
    try:
        busy = active_reviewers(PairingStore(settings.storage.pairings_path).load())
    except AutobiographiesError as exc:
        _fail(exc)

    if not len(roster):
        console.print("[yellow]No registered users[/yellow]")
        return

    table = Table(title=f"Registered users ({len(roster)} total)")
    table.add_column("#", justify="right")
    table.add_column("Address", style="cyan")
    table.add_column("Status", style="yellow")
    for position, address in enumerate(roster.all(), start=1):
        table.add_row(str(position), address, "reviewing" if address in busy else "available")
    console.print(table)


def _print_tick(result: TickResult) -> None:
    if result.aborted:
        console.print(f"[bold red]Round aborted:[/bold red] {result.error}")
        return

    console.print(f"Listed {result.candidates} messages")
    if result.outcomes:
        table = Table(title="Round results")
        table.add_column("Kind", style="cyan")
        table.add_column("Sender", style="green")
        table.add_column("Outcome", style="yellow")
        for outcome in result.outcomes:
            if outcome.routed:
                status = f"sent to {outcome.recipient}"
            else:
                status = f"skipped ({outcome.reason.value})"
            table.add_row(outcome.kind.value, outcome.sender, status)
        console.print(table)
    if result.flush_error:
        console.print(f"[bold red]Could not save pairings:[/bold red] {result.flush_error}")
    elif result.flushed:
        console.print("[green]Pairings saved[/green]")


def _load_or_exit(config_path: Path) -> Settings:
    try:
        return load_settings(config_path)
    except AutobiographiesError as exc:
        _fail(exc)


def _fail(exc: AutobiographiesError) -> None:
    console.print(format_error_for_cli(exc), style="red", markup=False)
    raise typer.Exit(1)


__all__ = [
    "build_router",
    "open_mailbox",
    "run_service",
    "run_tick",
    "show_pairings",
    "show_roster",
]
