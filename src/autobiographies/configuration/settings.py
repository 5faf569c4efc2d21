"""Typed settings for the autobiography exchange service.

Configuration lives in a JSON file wrapped in Pydantic models so the CLI and
the router can rely on validated values. Relative storage paths are resolved
against the directory holding the config file. The mail password is never
written back to disk; it comes from the config file, the environment or the
system keyring (see :class:`SecretStore`).
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import keyring
from pydantic import (
    BaseModel,
    Field,
    SecretStr,
    ValidationError,
    field_validator,
    model_validator,
)

from autobiographies.errors import InvalidConfigError, MissingConfigError


DEFAULT_CONFIG_PATH = Path.home() / ".autobiographies" / "config.json"
DEFAULT_SECRETS_SERVICE = "autobiographies"

DEFAULT_AUTOBIOGRAPHY_BODY = (
    "Hi, attached you will find an autobiography. Please read it and send your "
    "feedback using the guide you received when you signed up. "
    "Thank you for taking part!"
)
DEFAULT_FEEDBACK_BODY = (
    "Hi, attached you will find the feedback on the autobiography you sent us. "
    "We hope you find it useful!"
)


class MailSettings(BaseModel):
    """Mail account used to receive submissions and forward attachments."""

    address: str = Field(..., description="Service mailbox address")
    imap_host: str = Field(..., description="IMAP hostname")
    imap_port: int = Field(default=993, ge=1, le=65535, description="IMAP port (TLS)")
    smtp_host: str = Field(..., description="SMTP hostname")
    smtp_port: int = Field(default=465, ge=1, le=65535, description="SMTP port (SSL)")
    username: Optional[str] = Field(
        default=None, description="Login name; defaults to the address"
    )
    password: Optional[SecretStr] = Field(
        default=None, description="Login password; falls back to the keyring"
    )
    folder: str = Field(default="INBOX", description="Folder polled for submissions")
    timeout_seconds: int = Field(default=30, ge=1, le=600)

    @field_validator("address")
    @classmethod
    def _validate_address(cls, value: str) -> str:  # type: ignore[override]
        value = value.strip().lower()
        if "@" not in value or value.count("@") != 1:
            raise ValueError("Invalid email address")
        return value

    @field_validator("imap_host", "smtp_host")
    @classmethod
    def _validate_host(cls, value: str) -> str:  # type: ignore[override]
        if not value or " " in value:
            raise ValueError("host must be a valid hostname")
        return value

    @field_validator("imap_port")
    @classmethod
    def _validate_imap_port(cls, value: int) -> int:  # type: ignore[override]
        if value == 143:
            raise ValueError("Plain IMAP (port 143) is unsupported; use 993")
        return value

    @property
    def login(self) -> str:
        return self.username or self.address


class RoutingSettings(BaseModel):
    """Subject tags and outgoing message templates."""

    autobiography_tag: str = Field(default="autobiography", min_length=1)
    feedback_tag: str = Field(default="feedback", min_length=1)
    autobiography_subject: str = Field(default="Autobiography for feedback")
    feedback_subject: str = Field(default="Feedback on your autobiography")
    autobiography_body: str = Field(default=DEFAULT_AUTOBIOGRAPHY_BODY)
    feedback_body: str = Field(default=DEFAULT_FEEDBACK_BODY)

    @field_validator("autobiography_tag", "feedback_tag")
    @classmethod
    def _strip_tag(cls, value: str) -> str:  # type: ignore[override]
        value = value.strip()
        if not value:
            raise ValueError("tags must not be blank")
        return value

    @model_validator(mode="after")
    def _validate_distinct_tags(self) -> "RoutingSettings":
        if self.autobiography_tag.lower() == self.feedback_tag.lower():
            raise ValueError("autobiography_tag and feedback_tag must differ")
        return self


class StorageSettings(BaseModel):
    """On-disk locations for attachments, state and logs."""

    autobiographies_dir: Path = Field(default=Path("attachments/autobiographies"))
    feedback_dir: Path = Field(default=Path("attachments/feedback"))
    pairings_path: Path = Field(default=Path("data/pairings.json"))
    roster_path: Path = Field(default=Path("data/registered-users.json"))
    log_path: Path = Field(default=Path("autobiographies.log"))

    def resolve_against(self, base_dir: Path) -> "StorageSettings":
        """Return a copy with every relative path anchored at ``base_dir``."""

        base_dir = base_dir.expanduser()
        resolved: Dict[str, Path] = {}
        for name, value in self.model_dump().items():
            path = Path(value).expanduser()
            resolved[name] = path if path.is_absolute() else (base_dir / path)
        return StorageSettings.model_validate(resolved)


class Settings(BaseModel):
    """Root configuration state."""

    mail: MailSettings
    routing: RoutingSettings = Field(default_factory=RoutingSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    poll_interval_minutes: float = Field(default=5, gt=0, le=24 * 60)

    @property
    def poll_interval_seconds(self) -> float:
        return self.poll_interval_minutes * 60


@dataclass
class SecretStore:
    """Keyring abstraction for storing the mail password."""

    service_name: str = DEFAULT_SECRETS_SERVICE
    keyring_module: Any = field(default=keyring)

    def set_secret(self, key: str, value: str) -> None:
        if self.keyring_module is None:
            raise RuntimeError("Keyring module not configured")
        self.keyring_module.set_password(self.service_name, key, value)

    def get_secret(self, key: str) -> Optional[str]:
        if self.keyring_module is None:
            return None
        return self.keyring_module.get_password(self.service_name, key)


def load_settings(path: Path = DEFAULT_CONFIG_PATH) -> Settings:
    """Load settings from disk or raise if missing or invalid."""

    path = Path(path).expanduser()
    if not path.exists():
        raise MissingConfigError(
            f"Settings file not found at {path}", details={"path": str(path)}
        )
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise InvalidConfigError(
            f"Settings file {path} is not valid JSON: {exc}",
            details={"path": str(path)},
        ) from exc
    if not isinstance(payload, dict):
        raise InvalidConfigError(
            f"Settings file {path} must contain a JSON object",
            details={"path": str(path)},
        )

    payload = _apply_env_overrides(payload)
    try:
        settings = Settings.model_validate(payload)
    except ValidationError as exc:
        raise InvalidConfigError(
            f"Invalid configuration: {exc}", details={"path": str(path)}
        ) from exc

    settings.storage = settings.storage.resolve_against(path.parent)
    return settings


def save_settings(settings: Settings, path: Path = DEFAULT_CONFIG_PATH) -> None:
    """Persist settings to disk without the mail password."""

    payload = settings.model_dump(mode="json")
    payload["mail"]["password"] = None
    path = Path(path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")


def default_settings() -> Settings:
    """Template written by ``config init``; hosts must be edited before use."""

    return Settings.model_validate(
        {
            "mail": {
                "address": "autobiographies@example.com",
                "imap_host": "imap.example.com",
                "smtp_host": "smtp.example.com",
            }
        }
    )


def resolve_mail_password(
    settings: Settings, secret_store: SecretStore | None = None
) -> str:
    """Return the mail password from config/env, then the keyring."""

    if settings.mail.password is not None:
        return settings.mail.password.get_secret_value()

    secret_store = secret_store or SecretStore()
    password = secret_store.get_secret(mail_secret_key(settings.mail.login))
    if not password:
        raise MissingConfigError(
            "No mail password configured",
            details={"login": settings.mail.login},
        )
    return password


def mail_secret_key(login: str) -> str:
    return f"mail:{login}"


def _apply_env_overrides(data: Dict[str, Any]) -> Dict[str, Any]:
    mail = data.setdefault("mail", {})
    if isinstance(mail, dict):
        _set_env_override(mail, "password", "AUTOBIOGRAPHIES_MAIL_PASSWORD")
        _set_env_override(mail, "address", "AUTOBIOGRAPHIES_MAIL_ADDRESS")
    _set_env_override(
        data,
        "poll_interval_minutes",
        "AUTOBIOGRAPHIES_POLL_INTERVAL_MINUTES",
        cast_float=True,
    )
    return data


def _set_env_override(
    mapping: Dict[str, Any],
    key: str,
    env_name: str,
    *,
    cast_float: bool = False,
) -> None:
    raw = os.getenv(env_name)
    if raw is None:
        return
    if cast_float:
        try:
            mapping[key] = float(raw)
        except ValueError as exc:
            raise InvalidConfigError(
                f"{env_name} must be a number, got {raw!r}"
            ) from exc
    else:
        mapping[key] = raw


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "MailSettings",
    "RoutingSettings",
    "SecretStore",
    "Settings",
    "StorageSettings",
    "default_settings",
    "load_settings",
    "mail_secret_key",
    "resolve_mail_password",
    "save_settings",
]
