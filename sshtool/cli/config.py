"""Configuration-related CLI commands."""

from __future__ import annotations

import json

import typer

from sshtool.cli._shared import show_help_if_no_subcommand
from sshtool.config import AppConfig, ConfigStore

config_app = typer.Typer(help="Manage connection defaults")


@config_app.callback(invoke_without_command=True)
def config_root(ctx: typer.Context) -> None:
    """Display contextual help when no subcommand is provided."""

    show_help_if_no_subcommand(ctx)


@config_app.command("show")
def show_config() -> None:
    """Display the current application configuration."""

    store = ConfigStore()
    config = store.load()
    typer.echo(json.dumps(config.to_payload(), indent=2))


@config_app.command("set")
def set_config_value(
    key: str = typer.Argument(
        ...,
        metavar="KEY",
        help=f"Setting to change ({', '.join(AppConfig.keys())}).",
    ),
    value: str = typer.Argument(
        ...,
        metavar="VALUE",
        help="New value; an empty string clears optional settings.",
    ),
) -> None:
    """Persist a single default in the config file."""

    store = ConfigStore()
    config = store.load()
    try:
        config.set_value(key, value)
    except ValueError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(2) from exc
    store.save(config)
    typer.echo(f"Updated {key}.")


@config_app.command("reset")
def reset_config(
    assume_yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Skip the confirmation prompt.",
    ),
) -> None:
    """Restore every setting to its built-in default."""

    store = ConfigStore()
    if not assume_yes:
        typer.confirm(f"Reset configuration at {store.path}?", abort=True)
    store.save(AppConfig())
    typer.echo("Configuration reset to defaults.")
