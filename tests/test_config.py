"""Tests for connection settings and configuration persistence."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from sshtool.config import AppConfig, ConfigError, ConfigStore, SSHConfig, default_config_path


@pytest.fixture()
def tmp_config_path(tmp_path: Path) -> Path:
    """Provide a temporary config file location."""

    return tmp_path / "config.json"


@pytest.fixture()
def key_file(tmp_path: Path) -> Path:
    """Provide an existing (content-free) private key path."""

    path = tmp_path / "id_test"
    path.write_text("not a real key", encoding="utf-8")
    return path


def test_valid_password_config_passes_validation() -> None:
    """A host, user, port and password should be accepted."""

    config = SSHConfig(host="192.168.1.100", username="root", port=22, password="123456")

    config.validate()


def test_valid_key_config_passes_validation(key_file: Path) -> None:
    """An existing key file is enough to satisfy the auth requirement."""

    config = SSHConfig(host="example.com", username="deploy", key_file=key_file)

    config.validate()


@pytest.mark.parametrize(
    ("kwargs", "message"),
    [
        ({"host": "", "username": "root", "password": "pw"}, "host must not be empty"),
        ({"host": "example.com", "username": "", "password": "pw"}, "username must not be empty"),
        (
            {"host": "example.com", "username": "root", "port": 0, "password": "pw"},
            "port must be between 1 and 65535",
        ),
        (
            {"host": "example.com", "username": "root", "port": 70000, "password": "pw"},
            "port must be between 1 and 65535",
        ),
        (
            {"host": "example.com", "username": "root"},
            "either a password or a private key file must be provided",
        ),
    ],
)
def test_validation_failures(kwargs: dict[str, Any], message: str) -> None:
    """Each invalid field should produce its own error message."""

    config = SSHConfig(**kwargs)

    with pytest.raises(ConfigError, match=message):
        config.validate()


def test_validation_reports_first_failure() -> None:
    """When several rules fail the host check should be reported first."""

    config = SSHConfig(host="", username="", port=0)

    with pytest.raises(ConfigError, match="host must not be empty"):
        config.validate()


def test_validate_endpoint_ignores_credentials() -> None:
    """Endpoint checks should pass before any credential is known."""

    SSHConfig(host="example.com", username="root").validate_endpoint()

    with pytest.raises(ConfigError, match="port must be between 1 and 65535"):
        SSHConfig(host="example.com", username="root", port=0).validate_endpoint()


def test_missing_key_file_is_rejected(tmp_path: Path) -> None:
    """A key file that does not exist should fail validation."""

    missing = tmp_path / "missing_key"
    config = SSHConfig(host="example.com", username="root", key_file=missing)

    with pytest.raises(ConfigError, match="private key file does not exist"):
        config.validate()


def test_config_error_is_value_error() -> None:
    """Callers catching ValueError should also catch configuration errors."""

    assert issubclass(ConfigError, ValueError)


def test_address_and_target_formatting() -> None:
    """Address and target helpers should combine host, port and user."""

    config = SSHConfig(host="example.com", username="alice", port=2222)

    assert config.address == "example.com:2222"
    assert config.target == "alice@example.com:2222"


def test_auth_method_helpers(key_file: Path) -> None:
    """Auth helpers should reflect which credentials are present."""

    password_only = SSHConfig(host="h", username="u", password="pw")
    key_only = SSHConfig(host="h", username="u", key_file=key_file)
    both = SSHConfig(host="h", username="u", password="pw", key_file=key_file)

    assert password_only.has_password_auth() and not password_only.has_key_auth()
    assert key_only.has_key_auth() and not key_only.has_password_auth()
    assert both.has_key_auth() and both.has_password_auth()


def test_default_config_path_uses_data_dir(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    """The default config path should live in the application data directory."""

    expected_dir = tmp_path / "data"
    monkeypatch.setenv("SSHTOOL_DATA_DIR", str(expected_dir))

    default_path = default_config_path()

    assert default_path == expected_dir / "config.json"
    assert default_path.parent.exists()


def test_config_store_load_returns_defaults_for_missing_file(tmp_config_path: Path) -> None:
    """Loading a non-existent config file should produce default values."""

    store = ConfigStore(path=tmp_config_path)
    config = store.load()

    assert config == AppConfig()
    assert config.default_port == 22
    assert config.connect_timeout == 30.0
    assert config.term == "xterm"


def test_config_store_path_property(tmp_config_path: Path) -> None:
    """The path property should expose the configured location."""

    store = ConfigStore(path=tmp_config_path)
    assert store.path == tmp_config_path


def test_config_store_save_roundtrip(tmp_config_path: Path) -> None:
    """Saving and loading should round-trip configuration data."""

    store = ConfigStore(path=tmp_config_path)
    config = AppConfig()
    config.set_value("default_port", "2222")
    config.set_value("default_username", "deploy")
    config.set_value("connect_timeout", "5")

    store.save(config)

    assert tmp_config_path.exists()
    loaded = store.load()
    assert loaded.default_port == 2222
    assert loaded.default_username == "deploy"
    assert loaded.connect_timeout == 5.0

    payload = json.loads(tmp_config_path.read_text(encoding="utf-8"))
    assert payload["default_port"] == 2222
    assert payload["default_key_file"] is None


@pytest.mark.parametrize("content", ["not-json", "[]", "\n"])
def test_config_store_load_falls_back_to_defaults(tmp_config_path: Path, content: str) -> None:
    """Corrupt, non-mapping or blank files should yield default configuration."""

    tmp_config_path.write_text(content, encoding="utf-8")
    store = ConfigStore(path=tmp_config_path)

    assert store.load() == AppConfig()


def test_from_payload_ignores_invalid_values() -> None:
    """Unusable values should be replaced by defaults instead of failing."""

    payload = {
        "default_port": 99999,
        "connect_timeout": "soon",
        "term": "xterm-256color",
        "default_username": None,
        "unexpected": "value",
    }

    config = AppConfig.from_payload(payload)

    assert config.default_port == 22
    assert config.connect_timeout == 30.0
    assert config.term == "xterm-256color"
    assert config.default_username is None


def test_set_value_rejects_unknown_key() -> None:
    """Only known settings may be changed."""

    config = AppConfig()
    with pytest.raises(ValueError, match="unknown setting"):
        config.set_value("colour", "blue")


@pytest.mark.parametrize(
    ("key", "raw"),
    [
        ("default_port", "abc"),
        ("default_port", "0"),
        ("connect_timeout", "-1"),
        ("connect_timeout", "never"),
        ("term", "   "),
    ],
)
def test_set_value_rejects_invalid_values(key: str, raw: str) -> None:
    """Malformed or out-of-range values should raise ValueError."""

    config = AppConfig()
    with pytest.raises(ValueError):
        config.set_value(key, raw)


def test_set_value_empty_string_clears_optional_settings() -> None:
    """Empty strings should reset optional text settings."""

    config = AppConfig(default_username="alice", default_key_file="~/.ssh/id_ed25519")

    config.set_value("default_username", "")
    config.set_value("default_key_file", " ")

    assert config.default_username is None
    assert config.default_key_file is None


def test_keys_lists_every_setting() -> None:
    """The advertised keys should match the dataclass fields."""

    assert AppConfig.keys() == [
        "default_port",
        "default_username",
        "default_key_file",
        "connect_timeout",
        "term",
    ]


def test_config_store_load_handles_read_errors(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """An unreadable file should behave like missing configuration."""

    path = tmp_path / "config.json"
    path.write_text("{}", encoding="utf-8")

    store = ConfigStore(path=path)
    original_read_text = Path.read_text

    def boom_read_text(self: Path, *args: Any, **kwargs: Any) -> str:
        if self == path:
            raise OSError("boom")
        return original_read_text(self, *args, **kwargs)

    monkeypatch.setattr(Path, "read_text", boom_read_text)

    assert store.load() == AppConfig()
