"""SSH connection factory and thin command helpers on top of paramiko."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from types import TracebackType
from typing import Any

import paramiko
from cryptography.exceptions import UnsupportedAlgorithm
from paramiko.pkey import UnknownKeyType

from sshtool.config import ConfigError, SSHConfig

__all__ = [
    "AuthSetupError",
    "AuthenticationFailedError",
    "ClientError",
    "CommandError",
    "ConnectError",
    "SSHClient",
    "load_private_key",
]

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 30.0
_RECV_CHUNK = 32 * 1024

ClientFactory = Callable[[], paramiko.SSHClient]


class ClientError(Exception):
    """Base exception type for connection and session failures."""


class AuthSetupError(ClientError):
    """Raised when local authentication material cannot be prepared."""


class AuthenticationFailedError(ClientError):
    """Raised when the server rejects every offered credential."""


class ConnectError(ClientError):
    """Raised when the TCP or SSH handshake fails."""


class CommandError(ClientError):
    """Raised when a remote command exits with a non-zero status."""

    def __init__(self, command: str, exit_status: int, output: str) -> None:
        super().__init__(f"command {command!r} exited with status {exit_status}")
        self.command = command
        self.exit_status = exit_status
        self.output = output


def load_private_key(key_file: Path | str) -> paramiko.PKey:
    """Read and parse an unencrypted private key of any supported type."""

    path = Path(key_file).expanduser()
    try:
        return paramiko.PKey.from_path(path)
    except (paramiko.PasswordRequiredException, TypeError) as exc:
        raise AuthSetupError(
            f"failed to load private key: {path} is encrypted with a passphrase"
        ) from exc
    except (
        OSError,
        paramiko.SSHException,
        UnknownKeyType,
        UnsupportedAlgorithm,
        ValueError,
    ) as exc:
        raise AuthSetupError(f"failed to load private key: {exc}") from exc


class SSHClient:
    """A live SSH connection bound to the configuration that opened it."""

    def __init__(self, config: SSHConfig, connection: paramiko.SSHClient) -> None:
        self._config = config
        self._connection: paramiko.SSHClient | None = connection

    @classmethod
    def connect(
        cls,
        config: SSHConfig,
        *,
        timeout: float = _DEFAULT_TIMEOUT,
        factory: ClientFactory = paramiko.SSHClient,
    ) -> SSHClient:
        """Validate ``config``, authenticate and return a connected client."""

        try:
            config.validate()
        except ConfigError as exc:
            raise ClientError(f"configuration validation failed: {exc}") from exc

        options = cls._auth_options(config)

        connection = factory()
        # Host keys are accepted without verification.
        connection.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        logger.info("Connecting to %s", config.target)
        try:
            connection.connect(
                hostname=config.host,
                port=config.port,
                username=config.username,
                timeout=timeout,
                look_for_keys=False,
                allow_agent=False,
                **options,
            )
        except paramiko.AuthenticationException as exc:
            connection.close()
            raise AuthenticationFailedError(
                f"authentication failed for {config.target}: {exc}"
            ) from exc
        except (paramiko.SSHException, OSError) as exc:
            connection.close()
            raise ConnectError(f"SSH connection failed: {exc}") from exc
        logger.debug("Connected to %s", config.address)
        return cls(config, connection)

    @staticmethod
    def _auth_options(config: SSHConfig) -> dict[str, Any]:
        """Translate configured credentials into ``paramiko`` keyword options."""

        options: dict[str, Any] = {}
        if config.has_password_auth():
            logger.debug("Using password authentication")
            options["password"] = config.password
        if config.has_key_auth() and config.key_file is not None:
            logger.debug("Using public key authentication with %s", config.key_file)
            options["pkey"] = load_private_key(config.key_file)
        return options

    @property
    def config(self) -> SSHConfig:
        """Expose the configuration this client was created with."""

        return self._config

    @property
    def connection(self) -> paramiko.SSHClient:
        """Return the underlying paramiko client."""

        if self._connection is None:
            msg = "connection is closed"
            raise ClientError(msg)
        return self._connection

    def _transport(self) -> paramiko.Transport:
        transport = self.connection.get_transport()
        if transport is None or not transport.is_active():
            msg = "connection is closed"
            raise ClientError(msg)
        return transport

    def execute(self, command: str) -> str:
        """Run ``command`` in a fresh session and return stdout and stderr combined."""

        logger.debug("Executing remote command: %s", command)
        try:
            channel = self._transport().open_session()
        except paramiko.SSHException as exc:
            raise ClientError(f"failed to open session: {exc}") from exc

        chunks: list[bytes] = []
        try:
            channel.set_combine_stderr(True)
            channel.exec_command(command)
            while True:
                data = channel.recv(_RECV_CHUNK)
                if not data:
                    break
                chunks.append(data)
            exit_status = channel.recv_exit_status()
        except paramiko.SSHException as exc:
            raise ClientError(f"failed to execute command: {exc}") from exc
        finally:
            channel.close()

        output = b"".join(chunks).decode("utf-8", errors="replace")
        if exit_status != 0:
            raise CommandError(command, exit_status, output)
        return output

    def open_sftp(self) -> paramiko.SFTPClient:
        """Start the SFTP subsystem on this connection."""

        try:
            return self.connection.open_sftp()
        except paramiko.SSHException as exc:
            raise ClientError(f"failed to start SFTP session: {exc}") from exc

    def invoke_shell(
        self,
        *,
        term: str = "xterm",
        width: int = 80,
        height: int = 24,
        pty: bool = True,
    ) -> paramiko.Channel:
        """Open an interactive shell channel.

        A pseudo-terminal of the given type and size is requested first unless
        ``pty`` is false, in which case the shell runs with plain pipes.
        """

        try:
            channel = self._transport().open_session()
            if pty:
                logger.debug("Requesting %s pty %dx%d", term, width, height)
                channel.get_pty(term=term, width=width, height=height)
            channel.invoke_shell()
        except paramiko.SSHException as exc:
            raise ClientError(f"failed to start remote shell: {exc}") from exc
        return channel

    def close(self) -> None:
        """Close the connection; calling it again has no effect."""

        if self._connection is None:
            return
        logger.debug("Closing connection to %s", self._config.address)
        self._connection.close()
        self._connection = None

    def __enter__(self) -> SSHClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
