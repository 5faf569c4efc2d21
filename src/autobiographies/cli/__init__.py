"""Command line entry points for the autobiography exchange."""

from typer import Typer

from ..configuration.cli import config_app
from .service import run_service, run_tick, show_pairings, show_roster


cli = Typer(help="Autobiography exchange: pair authors with reviewers over e-mail")
cli.command("run")(run_service)
cli.command("tick")(run_tick)
cli.command("pairings")(show_pairings)
cli.command("roster")(show_roster)
cli.add_typer(config_app, name="config")

__all__ = ["cli", "config_app"]
