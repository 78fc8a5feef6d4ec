"""Interactive SFTP session and one-shot file transfers."""

from __future__ import annotations

import logging
import posixpath
import stat
from collections.abc import Callable, Sequence
from pathlib import Path

import paramiko
import typer

from sshtool.core.client import ClientError, SSHClient
from sshtool.core.interfaces import RemoteFileSystem

__all__ = [
    "SFTPCommandError",
    "SFTPShell",
    "download_file",
    "upload_file",
]

logger = logging.getLogger(__name__)

PromptFn = Callable[[str], str]
OutputFn = Callable[[str], None]

_HELP_LINES = (
    "Available SFTP commands:",
    "  ls [dir]              - list a remote directory",
    "  pwd                   - show the remote working directory",
    "  cd <dir>              - change the remote working directory",
    "  get <remote> [local]  - download a file",
    "  put <local> [remote]  - upload a file",
    "  mkdir <dir>           - create a remote directory",
    "  rm <file>             - delete a remote file",
    "  help                  - show this help",
    "  exit/quit             - leave the SFTP session",
)


class SFTPCommandError(Exception):
    """Raised when an SFTP command cannot be completed."""


def _default_prompt(message: str) -> str:
    """Prompt the user for input using Typer's utilities."""

    try:
        return typer.prompt(message, default="", show_default=False, prompt_suffix="")
    except typer.Abort as exc:
        raise EOFError from exc


def _default_output(message: str) -> None:
    """Emit a single line of output to the terminal."""

    typer.echo(message)


def _require(args: Sequence[str], message: str) -> str:
    if not args:
        raise SFTPCommandError(message)
    return args[0]


class SFTPShell:
    """Line-based front end over an SFTP client."""

    def __init__(
        self,
        sftp: RemoteFileSystem,
        *,
        target: str = "",
        prompt: PromptFn | None = None,
        output: OutputFn | None = None,
    ) -> None:
        self._sftp = sftp
        self._target = target
        self._prompt = prompt if prompt is not None else _default_prompt
        self._output = output if output is not None else _default_output
        self._handlers: dict[str, Callable[[list[str]], None]] = {
            "help": self._help,
            "ls": self._list,
            "dir": self._list,
            "pwd": self._pwd,
            "cd": self._change_dir,
            "get": self._get,
            "put": self._put,
            "mkdir": self._mkdir,
            "rm": self._remove,
        }

    def run(self) -> int:
        """Read and execute commands until ``exit``/``quit`` or end of input."""

        self._output("SFTP interactive mode, type 'help' for a list of commands")
        if self._target:
            self._output(f"Connected to: {self._target}")
        self._output(f"Remote directory: {self._current_dir()}")
        self._output("-" * 40)

        while True:
            try:
                line = self._prompt("sftp> ")
            except EOFError:
                self._output("")
                self._output("Goodbye!")
                return 0

            parts = line.split()
            if not parts:
                continue
            command, args = parts[0], parts[1:]

            if command in {"exit", "quit"}:
                self._output("Goodbye!")
                return 0

            try:
                self.execute(command, args)
            except SFTPCommandError as exc:
                self._output(f"Error: {exc}")

    def execute(self, command: str, args: list[str]) -> None:
        """Dispatch a single parsed command."""

        handler = self._handlers.get(command)
        if handler is None:
            raise SFTPCommandError(
                f"unknown command: {command}; type 'help' for a list of commands"
            )
        logger.debug("sftp command %s %s", command, args)
        try:
            handler(args)
        except (OSError, paramiko.SFTPError, paramiko.SSHException, ClientError) as exc:
            raise SFTPCommandError(f"{command} failed: {exc}") from exc

    def _current_dir(self) -> str:
        try:
            return self._sftp.normalize(".")
        except (OSError, paramiko.SFTPError):
            return "/"

    def _help(self, _args: list[str]) -> None:
        for line in _HELP_LINES:
            self._output(line)

    def _list(self, args: list[str]) -> None:
        path = args[0] if args else "."
        entries = sorted(self._sftp.listdir_attr(path), key=lambda item: item.filename)
        self._output(f"Contents of {path}:")
        for entry in entries:
            kind = "d" if entry.st_mode is not None and stat.S_ISDIR(entry.st_mode) else "-"
            size = entry.st_size if entry.st_size is not None else 0
            self._output(f"{kind} {size:>8} {entry.filename}")

    def _pwd(self, _args: list[str]) -> None:
        self._output(self._sftp.normalize("."))

    def _change_dir(self, args: list[str]) -> None:
        path = _require(args, "usage: cd <dir>")
        self._sftp.chdir(path)
        self._output(self._sftp.normalize("."))

    def _get(self, args: list[str]) -> None:
        remote = _require(args, "usage: get <remote> [local]")
        local = args[1] if len(args) > 1 else posixpath.basename(remote.rstrip("/"))
        if not local:
            raise SFTPCommandError(f"cannot derive a local file name from {remote!r}")
        self._output(f"Downloading {remote} to {local}...")
        self._sftp.get(remote, local)
        self._output(f"Downloaded {remote}")

    def _put(self, args: list[str]) -> None:
        local = _require(args, "usage: put <local> [remote]")
        source = Path(local).expanduser()
        if not source.is_file():
            raise SFTPCommandError(f"local file not found: {local}")
        remote = args[1] if len(args) > 1 else source.name
        self._output(f"Uploading {local} to {remote}...")
        self._sftp.put(str(source), remote)
        self._output(f"Uploaded {local}")

    def _mkdir(self, args: list[str]) -> None:
        path = _require(args, "usage: mkdir <dir>")
        self._sftp.mkdir(path)
        self._output(f"Created directory {path}")

    def _remove(self, args: list[str]) -> None:
        path = _require(args, "usage: rm <file>")
        self._sftp.remove(path)
        self._output(f"Removed {path}")


def upload_file(client: SSHClient, local_path: Path | str, remote_path: str) -> None:
    """Copy a single local file to ``remote_path`` over a dedicated SFTP channel."""

    source = Path(local_path).expanduser()
    if not source.is_file():
        raise SFTPCommandError(f"local file not found: {source}")
    sftp = client.open_sftp()
    try:
        logger.info("Uploading %s to %s", source, remote_path)
        sftp.put(str(source), remote_path)
    except (OSError, paramiko.SFTPError) as exc:
        raise SFTPCommandError(f"upload failed: {exc}") from exc
    finally:
        sftp.close()


def download_file(client: SSHClient, remote_path: str, local_path: Path | str) -> None:
    """Copy ``remote_path`` to a local file over a dedicated SFTP channel."""

    target = Path(local_path).expanduser()
    sftp = client.open_sftp()
    try:
        logger.info("Downloading %s to %s", remote_path, target)
        sftp.get(remote_path, str(target))
    except (OSError, paramiko.SFTPError) as exc:
        raise SFTPCommandError(f"download failed: {exc}") from exc
    finally:
        sftp.close()
