"""Tests for the service configuration settings."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict

import pytest
from pydantic import SecretStr, ValidationError

from autobiographies.configuration.settings import (
    MailSettings,
    RoutingSettings,
    SecretStore,
    Settings,
    default_settings,
    load_settings,
    mail_secret_key,
    resolve_mail_password,
    save_settings,
)
from autobiographies.errors import InvalidConfigError, MissingConfigError


class InMemorySecretStore(SecretStore):
    def __init__(self) -> None:
        super().__init__(service_name="test", keyring_module=None)
        self.storage: Dict[str, str] = {}

    def set_secret(self, key: str, value: str) -> None:  # type: ignore[override]
        self.storage[key] = value

    def get_secret(self, key: str) -> str | None:  # type: ignore[override]
        return self.storage.get(key)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "AUTOBIOGRAPHIES_MAIL_PASSWORD",
        "AUTOBIOGRAPHIES_MAIL_ADDRESS",
        "AUTOBIOGRAPHIES_POLL_INTERVAL_MINUTES",
    ):
        monkeypatch.delenv(name, raising=False)


def write_config(path: Path, **overrides) -> Path:
    payload = {
        "mail": {
            "address": "Service@X.org",
            "imap_host": "imap.x.org",
            "smtp_host": "smtp.x.org",
        }
    }
    payload.update(overrides)
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_load_applies_defaults(tmp_path: Path) -> None:
    settings = load_settings(write_config(tmp_path / "config.json"))

    assert settings.mail.address == "service@x.org"
    assert settings.mail.imap_port == 993
    assert settings.mail.smtp_port == 465
    assert settings.mail.folder == "INBOX"
    assert settings.routing.autobiography_tag == "autobiography"
    assert settings.routing.feedback_tag == "feedback"
    assert settings.poll_interval_minutes == 5
    assert settings.poll_interval_seconds == 300


def test_relative_storage_paths_resolve_against_config_dir(tmp_path: Path) -> None:
    config = write_config(
        tmp_path / "config.json",
        storage={"pairings_path": "state/pairings.json", "roster_path": "/etc/users.json"},
    )

    settings = load_settings(config)

    assert settings.storage.pairings_path == tmp_path / "state" / "pairings.json"
    assert settings.storage.roster_path == Path("/etc/users.json")
    assert settings.storage.autobiographies_dir == tmp_path / "attachments" / "autobiographies"


def test_missing_config_raises(tmp_path: Path) -> None:
    with pytest.raises(MissingConfigError):
        load_settings(tmp_path / "absent.json")


@pytest.mark.parametrize("content", ["{oops", "[1, 2]", '{"mail": {"address": "nope"}}'])
def test_invalid_config_raises(tmp_path: Path, content: str) -> None:
    path = tmp_path / "config.json"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(InvalidConfigError):
        load_settings(path)


def test_plain_imap_port_rejected() -> None:
    with pytest.raises(ValidationError, match="143"):
        MailSettings(
            address="s@x.org", imap_host="imap.x.org", smtp_host="smtp.x.org", imap_port=143
        )


def test_tags_must_differ() -> None:
    with pytest.raises(ValidationError, match="must differ"):
        RoutingSettings(autobiography_tag="Feedback", feedback_tag="feedback")


def test_blank_tag_rejected() -> None:
    with pytest.raises(ValidationError):
        RoutingSettings(autobiography_tag="   ")


def test_env_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AUTOBIOGRAPHIES_MAIL_PASSWORD", "from-env")
    monkeypatch.setenv("AUTOBIOGRAPHIES_POLL_INTERVAL_MINUTES", "0.5")

    settings = load_settings(write_config(tmp_path / "config.json"))

    assert settings.mail.password.get_secret_value() == "from-env"
    assert settings.poll_interval_seconds == 30


def test_bad_interval_env_raises(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AUTOBIOGRAPHIES_POLL_INTERVAL_MINUTES", "soon")

    with pytest.raises(InvalidConfigError):
        load_settings(write_config(tmp_path / "config.json"))


def test_save_never_writes_password(tmp_path: Path) -> None:
    settings = default_settings()
    settings.mail.password = SecretStr("hunter2")
    path = tmp_path / "out" / "config.json"

    save_settings(settings, path)

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["mail"]["password"] is None
    assert "hunter2" not in path.read_text(encoding="utf-8")


def test_save_then_load_round_trip(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    save_settings(default_settings(), path)

    loaded = load_settings(path)

    assert loaded.mail.address == "autobiographies@example.com"
    assert loaded.routing == RoutingSettings()


def test_password_resolution_prefers_config() -> None:
    settings = Settings.model_validate(
        {
            "mail": {
                "address": "s@x.org",
                "imap_host": "imap.x.org",
                "smtp_host": "smtp.x.org",
                "password": "inline",
            }
        }
    )
    store = InMemorySecretStore()
    store.set_secret(mail_secret_key("s@x.org"), "from-keyring")

    assert resolve_mail_password(settings, store) == "inline"


def test_password_resolution_falls_back_to_keyring() -> None:
    settings = default_settings()
    store = InMemorySecretStore()
    store.set_secret(mail_secret_key(settings.mail.login), "from-keyring")

    assert resolve_mail_password(settings, store) == "from-keyring"


def test_password_missing_everywhere_raises() -> None:
    with pytest.raises(MissingConfigError):
        resolve_mail_password(default_settings(), InMemorySecretStore())


def test_login_defaults_to_address() -> None:
    mail = MailSettings(address="s@x.org", imap_host="imap.x.org", smtp_host="smtp.x.org")

    assert mail.login == "s@x.org"
    assert mail.model_copy(update={"username": "svc"}).login == "svc"
