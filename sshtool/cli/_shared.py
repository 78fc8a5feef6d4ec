"""Shared helpers for Typer-based CLI components."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import typer

from sshtool.config import AppConfig, ConfigError, ConfigStore, SSHConfig
from sshtool.core.client import ClientError, SSHClient

logger = logging.getLogger(__name__)


def show_help_if_no_subcommand(ctx: typer.Context) -> None:
    """Emit contextual help when a subcommand is not provided."""

    if ctx.invoked_subcommand or ctx.resilient_parsing:
        return
    typer.echo(ctx.get_help())
    raise typer.Exit()


def load_app_config() -> AppConfig:
    """Read persisted defaults from the standard configuration file."""

    return ConfigStore().load()


def _handle_error(exc: Exception, exit_code: int = 1) -> None:
    """Render a user-friendly error and exit with the given code."""

    message = str(exc) or exc.__class__.__name__
    typer.echo(message, err=True)
    raise typer.Exit(exit_code)


def build_ssh_config(
    defaults: AppConfig,
    *,
    host: str | None,
    port: int | None,
    username: str | None,
    password: str | None,
    key_file: Path | None,
) -> SSHConfig:
    """Merge CLI options with stored defaults, prompting for a password if needed."""

    resolved_key = key_file
    if resolved_key is None and password is None and defaults.default_key_file:
        resolved_key = Path(defaults.default_key_file).expanduser()

    config = SSHConfig(
        host=host or "",
        username=username or defaults.default_username or "",
        port=port if port is not None else defaults.default_port,
        password=password,
        key_file=resolved_key,
    )

    if not config.password and not config.key_file:
        try:
            config.validate_endpoint()
        except ConfigError as exc:
            _handle_error(exc, exit_code=2)
        config.password = typer.prompt(f"Password for {config.target}", hide_input=True)
    return config


@contextmanager
def client_session(config: SSHConfig, *, timeout: float) -> Iterator[SSHClient]:
    """Yield a connected client, translating failures into CLI exits."""

    try:
        config.validate()
    except ConfigError as exc:
        _handle_error(exc, exit_code=2)

    try:
        client = SSHClient.connect(config, timeout=timeout)
    except ClientError as exc:
        _handle_error(exc)

    try:
        yield client
    except ClientError as exc:
        logger.debug("Session error", exc_info=True)
        _handle_error(exc)
    finally:
        client.close()
