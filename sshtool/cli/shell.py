"""Interactive remote shell and line-oriented command loop."""

from __future__ import annotations

import logging
import os
import select
import shutil
import signal
import sys
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any, Protocol

import typer

from sshtool.core.client import ClientError, CommandError, SSHClient
from sshtool.core.interfaces import CommandRunner

__all__ = ["CommandLoop", "run_shell", "terminal_size"]

logger = logging.getLogger(__name__)

_RECV_CHUNK = 32 * 1024
_POLL_INTERVAL = 0.5

PromptFn = Callable[[str], str]
OutputFn = Callable[[str], None]


class ShellChannel(Protocol):
    """Channel operations needed to pump an interactive shell."""

    eof_received: bool

    def recv(self, nbytes: int) -> bytes: ...

    def recv_ready(self) -> bool: ...

    def recv_stderr(self, nbytes: int) -> bytes: ...

    def recv_stderr_ready(self) -> bool: ...

    def sendall(self, data: bytes) -> None: ...

    def shutdown_write(self) -> None: ...

    def resize_pty(self, width: int = 80, height: int = 24) -> None: ...

    def recv_exit_status(self) -> int: ...

    def fileno(self) -> int: ...

    def close(self) -> None: ...


def terminal_size() -> tuple[int, int]:
    """Return the local terminal size as ``(columns, lines)``."""

    size = shutil.get_terminal_size(fallback=(80, 24))
    return max(size.columns, 1), max(size.lines, 1)


@contextmanager
def _raw_mode(fd: int) -> Iterator[None]:
    """Switch ``fd`` to raw mode for the duration of the block."""

    try:
        import termios
        import tty
    except ImportError as exc:  # pragma: no cover - platform specific
        msg = "termios support is required for interactive shell sessions"
        raise RuntimeError(msg) from exc

    original = termios.tcgetattr(fd)
    try:
        tty.setraw(fd)
        yield
    finally:
        termios.tcsetattr(fd, termios.TCSADRAIN, original)


@contextmanager
def _resize_watcher() -> Iterator[list[bool]]:
    """Flag terminal resizes reported through ``SIGWINCH``."""

    pending = [False]
    sigwinch: int | None = getattr(signal, "SIGWINCH", None)
    if sigwinch is None:  # pragma: no cover - platform specific
        yield pending
        return

    def _on_resize(_signum: int, _frame: Any) -> None:
        pending[0] = True

    try:
        previous = signal.signal(sigwinch, _on_resize)
    except ValueError:  # not in the main thread
        yield pending
        return
    try:
        yield pending
    finally:
        signal.signal(sigwinch, previous)


def _pump(channel: ShellChannel, stdin_fd: int, stdout_fd: int, stderr_fd: int) -> None:
    """Forward bytes between the local descriptors and the channel until it closes.

    Remote stderr, kept separate when no pty was requested, is copied to
    ``stderr_fd``.
    """

    stdin_open = True
    with _resize_watcher() as resize_pending:
        while True:
            if resize_pending[0]:
                resize_pending[0] = False
                width, height = terminal_size()
                logger.debug("Resizing remote pty to %dx%d", width, height)
                channel.resize_pty(width=width, height=height)

            sources: list[Any] = [channel, stdin_fd] if stdin_open else [channel]
            readable, _, _ = select.select(sources, [], [], _POLL_INTERVAL)

            if channel in readable:
                while channel.recv_stderr_ready():
                    os.write(stderr_fd, channel.recv_stderr(_RECV_CHUNK))
                # recv blocks while only stderr is pending
                if channel.recv_ready() or channel.eof_received:
                    data = channel.recv(_RECV_CHUNK)
                    if not data:
                        break
                    os.write(stdout_fd, data)

            if stdin_open and stdin_fd in readable:
                data = os.read(stdin_fd, _RECV_CHUNK)
                if data:
                    channel.sendall(data)
                else:
                    channel.shutdown_write()
                    stdin_open = False


def run_shell(
    client: SSHClient,
    *,
    term: str = "xterm",
    stdin_fd: int | None = None,
    stdout_fd: int | None = None,
    stderr_fd: int | None = None,
) -> int:
    """Attach the local terminal to a remote shell and return its exit status."""

    stdin_fd = stdin_fd if stdin_fd is not None else sys.stdin.fileno()
    stdout_fd = stdout_fd if stdout_fd is not None else sys.stdout.fileno()
    stderr_fd = stderr_fd if stderr_fd is not None else sys.stderr.fileno()
    interactive = os.isatty(stdin_fd)

    width, height = terminal_size()
    channel = client.invoke_shell(term=term, width=width, height=height, pty=interactive)
    try:
        if interactive:
            with _raw_mode(stdin_fd):
                _pump(channel, stdin_fd, stdout_fd, stderr_fd)
        else:
            _pump(channel, stdin_fd, stdout_fd, stderr_fd)
        status = channel.recv_exit_status()
    finally:
        channel.close()
    logger.debug("Remote shell exited with status %d", status)
    return status


def _default_prompt(message: str) -> str:
    """Prompt the user for input using Typer's utilities."""

    try:
        return typer.prompt(message, default="", show_default=False, prompt_suffix="")
    except typer.Abort as exc:
        raise EOFError from exc


def _default_output(message: str) -> None:
    """Emit a single line of output to the terminal."""

    typer.echo(message)


class CommandLoop:
    """Read commands line by line and run each one on the remote host."""

    def __init__(
        self,
        runner: CommandRunner,
        *,
        target: str = "",
        prompt: PromptFn | None = None,
        output: OutputFn | None = None,
    ) -> None:
        self._runner = runner
        self._target = target
        self._prompt = prompt if prompt is not None else _default_prompt
        self._output = output if output is not None else _default_output

    def run(self) -> int:
        """Loop until ``exit``/``quit`` or end of input."""

        self._output("Interactive command mode, type 'exit' to quit")
        if self._target:
            self._output(f"Connected to: {self._target}")
        self._output("-" * 40)

        while True:
            try:
                line = self._prompt("$ ").strip()
            except EOFError:
                self._output("")
                self._output("Goodbye!")
                return 0

            if line in {"exit", "quit"}:
                self._output("Goodbye!")
                return 0
            if not line:
                continue

            try:
                result = self._runner.execute(line)
            except CommandError as exc:
                if exc.output:
                    self._emit(exc.output)
                self._output(f"Command failed: {exc}")
                continue
            except ClientError as exc:
                self._output(f"Command failed: {exc}")
                continue
            self._emit(result)

    def _emit(self, text: str) -> None:
        if not text:
            return
        self._output(text[:-1] if text.endswith("\n") else text)
