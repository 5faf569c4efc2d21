"""Configuration loading utilities for the autobiography exchange."""

from .settings import (
    DEFAULT_CONFIG_PATH,
    MailSettings,
    RoutingSettings,
    SecretStore,
    Settings,
    StorageSettings,
    load_settings,
    resolve_mail_password,
    save_settings,
)

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "MailSettings",
    "RoutingSettings",
    "SecretStore",
    "Settings",
    "StorageSettings",
    "load_settings",
    "resolve_mail_password",
    "save_settings",
]
