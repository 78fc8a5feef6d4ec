"""Command-line interface for the sshtool application."""

from __future__ import annotations

import logging
import sys
from collections.abc import Sequence
from enum import Enum
from pathlib import Path

import click
import typer

from sshtool import __version__
from sshtool.cli._shared import (
    build_ssh_config,
    client_session,
    load_app_config,
    show_help_if_no_subcommand,
)
from sshtool.cli.config import config_app
from sshtool.cli.sftp_shell import SFTPCommandError, SFTPShell, download_file, upload_file
from sshtool.cli.shell import CommandLoop, run_shell
from sshtool.config import SSHConfig
from sshtool.core.client import CommandError

logger = logging.getLogger(__name__)

app = typer.Typer(help="SSH and SFTP client")
app.add_typer(config_app, name="config", help="Inspect and adjust connection defaults")

_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class LogLevel(str, Enum):
    """Logging levels accepted by ``--log-level``."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


def setup_logging(level: str = "WARNING") -> None:
    """Configure logging for the application on stderr."""

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=_LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stderr)],
    )


@app.callback(invoke_without_command=True)
def cli(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show the application's version and exit.",
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging.",
    ),
    log_level: LogLevel = typer.Option(
        LogLevel.WARNING,
        "--log-level",
        help="Set the logging level.",
        case_sensitive=False,
    ),
) -> None:
    """Handle top-level options for the CLI."""
    if version:
        typer.echo(__version__)
        raise typer.Exit()

    setup_logging(LogLevel.DEBUG.value if verbose else log_level.value)

    if ctx.resilient_parsing:
        return
    show_help_if_no_subcommand(ctx)


@app.command("shell")
def shell_command(
    host: str | None = typer.Option(None, "--host", "-H", help="Remote host name or address."),
    port: int | None = typer.Option(
        None,
        "--port",
        "-p",
        help="Remote SSH port (defaults to the configured port).",
    ),
    user: str | None = typer.Option(None, "--user", "-u", help="Login user name."),
    password: str | None = typer.Option(
        None,
        "--password",
        envvar="SSHTOOL_PASSWORD",
        help="Login password (omit to be prompted securely).",
    ),
    key: Path | None = typer.Option(None, "--key", "-i", help="Private key file."),
    timeout: float | None = typer.Option(
        None,
        "--timeout",
        help="Connection timeout in seconds.",
    ),
) -> None:
    """Open an interactive shell on the remote host."""

    defaults = load_app_config()
    config = build_ssh_config(
        defaults,
        host=host,
        port=port,
        username=user,
        password=password,
        key_file=key,
    )
    status = _run_shell(config, defaults.term, timeout or defaults.connect_timeout)
    raise typer.Exit(status)


@app.command(
    "exec",
    context_settings={"allow_interspersed_args": False, "ignore_unknown_options": True},
)
def exec_command(
    command: list[str] | None = typer.Argument(
        None,
        metavar="[COMMAND]...",
        help="Command to run; omit to enter an interactive command loop.",
    ),
    host: str | None = typer.Option(None, "--host", "-H", help="Remote host name or address."),
    port: int | None = typer.Option(
        None,
        "--port",
        "-p",
        help="Remote SSH port (defaults to the configured port).",
    ),
    user: str | None = typer.Option(None, "--user", "-u", help="Login user name."),
    password: str | None = typer.Option(
        None,
        "--password",
        envvar="SSHTOOL_PASSWORD",
        help="Login password (omit to be prompted securely).",
    ),
    key: Path | None = typer.Option(None, "--key", "-i", help="Private key file."),
    timeout: float | None = typer.Option(
        None,
        "--timeout",
        help="Connection timeout in seconds.",
    ),
) -> None:
    """Run a remote command, or read commands line by line when none is given."""

    defaults = load_app_config()
    config = build_ssh_config(
        defaults,
        host=host,
        port=port,
        username=user,
        password=password,
        key_file=key,
    )
    with client_session(config, timeout=timeout or defaults.connect_timeout) as client:
        if not command:
            CommandLoop(client, target=config.target).run()
            return
        try:
            output = client.execute(" ".join(command))
        except CommandError as exc:
            typer.echo(exc.output, nl=False)
            raise typer.Exit(exc.exit_status) from exc
        typer.echo(output, nl=False)


@app.command("sftp")
def sftp_command(
    host: str | None = typer.Option(None, "--host", "-H", help="Remote host name or address."),
    port: int | None = typer.Option(
        None,
        "--port",
        "-p",
        help="Remote SSH port (defaults to the configured port).",
    ),
    user: str | None = typer.Option(None, "--user", "-u", help="Login user name."),
    password: str | None = typer.Option(
        None,
        "--password",
        envvar="SSHTOOL_PASSWORD",
        help="Login password (omit to be prompted securely).",
    ),
    key: Path | None = typer.Option(None, "--key", "-i", help="Private key file."),
    timeout: float | None = typer.Option(
        None,
        "--timeout",
        help="Connection timeout in seconds.",
    ),
    upload: Path | None = typer.Option(
        None,
        "--upload",
        help="Local file to upload to --remote.",
    ),
    download: Path | None = typer.Option(
        None,
        "--download",
        help="Local destination for the file at --remote.",
    ),
    remote: str | None = typer.Option(
        None,
        "--remote",
        help="Remote path for --upload or --download.",
    ),
) -> None:
    """Transfer a single file, or start an interactive SFTP session."""

    if upload is not None and download is not None:
        typer.echo("Provide at most one of --upload or --download.", err=True)
        raise typer.Exit(2)
    if (upload is not None or download is not None) and not remote:
        typer.echo("--remote is required with --upload or --download.", err=True)
        raise typer.Exit(2)

    defaults = load_app_config()
    config = build_ssh_config(
        defaults,
        host=host,
        port=port,
        username=user,
        password=password,
        key_file=key,
    )
    with client_session(config, timeout=timeout or defaults.connect_timeout) as client:
        try:
            if upload is not None and remote:
                typer.echo(f"Uploading {upload} to {remote}...")
                upload_file(client, upload, remote)
                typer.echo("Upload complete.")
            elif download is not None and remote:
                typer.echo(f"Downloading {remote} to {download}...")
                download_file(client, remote, download)
                typer.echo("Download complete.")
            else:
                sftp = client.open_sftp()
                try:
                    SFTPShell(sftp, target=config.target).run()
                finally:
                    sftp.close()
        except SFTPCommandError as exc:
            typer.echo(str(exc), err=True)
            raise typer.Exit(1) from exc


def _run_shell(config: SSHConfig, term: str, timeout: float) -> int:
    """Connect and attach the local terminal to a remote shell."""

    with client_session(config, timeout=timeout) as client:
        typer.echo(f"Connecting to {config.target}...")
        try:
            return run_shell(client, term=term)
        except RuntimeError as exc:  # pragma: no cover - platform specific
            typer.echo(str(exc), err=True)
            return 1
    return 1  # pragma: no cover - client_session always exits on failure


def _connect_to_host(target: str) -> int:
    """Open an interactive shell against a ``[user@]host[:port]`` target."""

    hostname, username, port = _split_target(target)
    if not hostname:
        typer.echo("A host value must be supplied.", err=True)
        return 2

    setup_logging()
    defaults = load_app_config()
    try:
        config = build_ssh_config(
            defaults,
            host=hostname,
            port=port,
            username=username,
            password=None,
            key_file=None,
        )
        return _run_shell(config, defaults.term, defaults.connect_timeout)
    except typer.Exit as exc:
        return exc.exit_code
    except typer.Abort:
        typer.echo("Aborted.", err=True)
        return 1


def _split_target(target: str) -> tuple[str, str | None, int | None]:
    """Split a target string into hostname, optional username and optional port.

    IPv6 addresses take a port only in the bracketed ``[addr]:port`` form; a
    bare address such as ``::1`` is returned unchanged.
    """

    username: str | None = None
    host = target
    if "@" in target:
        user_part, _, host_part = target.rpartition("@")
        if user_part and host_part:
            username, host = user_part, host_part

    port: int | None = None
    if host.startswith("[") and "]" in host:
        address, _, rest = host[1:].partition("]")
        if not rest:
            host = address
        elif rest.startswith(":") and rest[1:].isdigit():
            host, port = address, int(rest[1:])
    elif host.count(":") == 1:
        name, _, port_text = host.partition(":")
        if name and port_text.isdigit():
            host, port = name, int(port_text)
    return host, username, port


def _known_subcommand_names() -> set[str]:
    """Collect all registered top-level command names."""

    names: set[str] = {info.name for info in app.registered_commands if info.name is not None}
    names.update(name for info in app.registered_groups if (name := info.name) is not None)
    return names


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the sshtool CLI."""

    args = list(argv) if argv is not None else list(sys.argv[1:])
    if args:
        first = args[0]
        if not first.startswith("-") and first not in _known_subcommand_names():
            return _connect_to_host(first)

    try:
        result = app(args=args, standalone_mode=False)
    except typer.Exit as exc:  # exit path already handled by Typer
        return exc.exit_code
    except click.ClickException as exc:
        exc.show()
        return exc.exit_code
    except typer.Abort:
        typer.echo("Aborted.", err=True)
        return 1
    except Exception as exc:  # pragma: no cover - unexpected errors bubble to the shell
        typer.echo(str(exc), err=True)
        return 1
    return result if isinstance(result, int) else 0


if __name__ == "__main__":  # pragma: no cover - manual execution only
    raise SystemExit(main())
