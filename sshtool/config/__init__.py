"""Connection settings and persisted application defaults for sshtool."""

from __future__ import annotations

import json
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

from sshtool.paths import data_dir

__all__ = [
    "AppConfig",
    "ConfigError",
    "ConfigStore",
    "SSHConfig",
    "default_config_path",
]

_DEFAULT_CONFIG_FILENAME = "config.json"
_DEFAULT_PORT = 22
_DEFAULT_TIMEOUT = 30.0
_DEFAULT_TERM = "xterm"


class ConfigError(ValueError):
    """Raised when connection settings are incomplete or invalid."""


def _valid_port(value: int) -> bool:
    return 0 < value <= 65535


@dataclass(slots=True)
class SSHConfig:
    """Everything needed to open an SSH connection to a single host."""

    host: str
    username: str
    port: int = _DEFAULT_PORT
    password: str | None = None
    key_file: Path | str | None = None

    def validate(self) -> None:
        """Check required fields and the authentication method.

        Rules are evaluated in a fixed order and the first failure is raised
        as :class:`ConfigError`.
        """

        self.validate_endpoint()
        if not self.has_password_auth() and not self.has_key_auth():
            raise ConfigError("either a password or a private key file must be provided")
        if self.key_file and not Path(self.key_file).expanduser().exists():
            raise ConfigError(f"private key file does not exist: {self.key_file}")

    def validate_endpoint(self) -> None:
        """Check host, username and port, leaving credentials aside."""

        if not self.host:
            raise ConfigError("host must not be empty")
        if not self.username:
            raise ConfigError("username must not be empty")
        if not _valid_port(self.port):
            raise ConfigError("port must be between 1 and 65535")

    @property
    def address(self) -> str:
        """Return the ``host:port`` pair used to dial the server."""

        return f"{self.host}:{self.port}"

    @property
    def target(self) -> str:
        """Return a ``user@host:port`` string for display purposes."""

        return f"{self.username}@{self.address}"

    def has_key_auth(self) -> bool:
        return bool(self.key_file)

    def has_password_auth(self) -> bool:
        return bool(self.password)


@dataclass(slots=True)
class AppConfig:
    """Defaults applied to connections when the CLI omits an option."""

    default_port: int = _DEFAULT_PORT
    default_username: str | None = None
    default_key_file: str | None = None
    connect_timeout: float = _DEFAULT_TIMEOUT
    term: str = _DEFAULT_TERM

    def to_payload(self) -> dict[str, Any]:
        """Serialize the configuration into a JSON-compatible structure."""

        return {
            "default_port": self.default_port,
            "default_username": self.default_username,
            "default_key_file": self.default_key_file,
            "connect_timeout": self.connect_timeout,
            "term": self.term,
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> AppConfig:
        """Create a configuration instance from serialized data.

        Values with the wrong type or out of range are dropped in favour of
        the defaults rather than failing the whole load.
        """

        config = cls()
        for key, value in payload.items():
            if value is None:
                continue
            try:
                config.set_value(key, str(value))
            except ValueError:
                continue
        return config

    @classmethod
    def keys(cls) -> list[str]:
        """Names of the settings that may be changed."""

        return [item.name for item in fields(cls)]

    def set_value(self, key: str, raw: str) -> None:
        """Parse ``raw`` and assign it to the setting named ``key``."""

        normalized = raw.strip()
        if key == "default_port":
            try:
                port = int(normalized)
            except ValueError as exc:
                raise ValueError(f"invalid port: {raw!r}") from exc
            if not _valid_port(port):
                msg = "port must be between 1 and 65535"
                raise ValueError(msg)
            self.default_port = port
        elif key == "connect_timeout":
            try:
                timeout = float(normalized)
            except ValueError as exc:
                raise ValueError(f"invalid timeout: {raw!r}") from exc
            if timeout <= 0:
                msg = "timeout must be positive"
                raise ValueError(msg)
            self.connect_timeout = timeout
        elif key == "term":
            if not normalized:
                msg = "terminal type must not be empty"
                raise ValueError(msg)
            self.term = normalized
        elif key == "default_username":
            self.default_username = normalized or None
        elif key == "default_key_file":
            self.default_key_file = normalized or None
        else:
            raise ValueError(f"unknown setting: {key}")


def default_config_path() -> Path:
    """Return the default location for the application's configuration file."""

    return data_dir() / _DEFAULT_CONFIG_FILENAME


class ConfigStore:
    """Manage persistence of the application configuration file."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path if path is not None else default_config_path()

    @property
    def path(self) -> Path:
        """Expose the backing configuration file path."""

        return self._path

    def load(self) -> AppConfig:
        """Load configuration from disk, returning defaults when absent."""

        if not self._path.exists():
            return AppConfig()
        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError:
            return AppConfig()
        if not raw.strip():
            return AppConfig()
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError:
            return AppConfig()
        if not isinstance(payload, dict):
            return AppConfig()
        return AppConfig.from_payload(payload)

    def save(self, config: AppConfig) -> None:
        """Persist the provided configuration to disk atomically."""

        self._path.parent.mkdir(parents=True, exist_ok=True)
        data = json.dumps(config.to_payload(), indent=2, sort_keys=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(data, encoding="utf-8")
        tmp_path.replace(self._path)
