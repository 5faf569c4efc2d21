"""Centralized error definitions for the autobiography exchange.

Errors are split in two channels:

- recoverable per-item or per-tick failures (mailbox listing, attachment
  download, sending) which the router catches, logs and retries on the next
  polling interval;
- fatal failures (corrupted pairing table, broken configuration) which are
  surfaced to the operator at startup.

Usage:
    from autobiographies.errors import AutobiographiesError, handle_error

    try:
        pairings = store.load()
    except AutobiographiesError as e:
        print(handle_error(e))
"""

from __future__ import annotations

from autobiographies.errors.user_messages import (
    format_error_for_user,
    get_recovery_suggestion,
    get_user_message,
)


# =============================================================================
# Base Error
# =============================================================================


class AutobiographiesError(Exception):
    """Base exception for all autobiography exchange errors.

    Attributes:
        code: Error code for categorization
        user_message: User-friendly message (optional override)
        recoverable: Whether the error is potentially recoverable
        details: Additional error details for debugging
    """

    code: str = "AUTOBIOGRAPHIES_ERROR"
    default_message: str = "An unexpected error occurred"
    recoverable: bool = True

    def __init__(
        self,
        message: str | None = None,
        *,
        user_message: str | None = None,
        details: dict | None = None,
    ) -> None:
        self.message = message or self.default_message
        self._user_message = user_message
        self.details = details or {}
        super().__init__(self.message)

    @property
    def user_message(self) -> str:
        """Get user-friendly message."""
        if self._user_message:
            return self._user_message
        return get_user_message(self)

    @property
    def recovery_suggestion(self) -> str:
        """Get recovery suggestion."""
        return get_recovery_suggestion(self)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "code": self.code,
            "message": self.message,
            "user_message": self.user_message,
            "recoverable": self.recoverable,
            "details": self.details,
        }


# =============================================================================
# Mailbox Errors
# =============================================================================


class MailboxError(AutobiographiesError):
    """Base error for mail provider operations."""

    code = "MAILBOX_ERROR"
    default_message = "Mailbox operation failed"


class MailboxFetchError(MailboxError):
    """Listing the inbox failed; the whole tick is aborted."""

    code = "MAILBOX_FETCH_ERROR"
    default_message = "Could not list mailbox messages"


class AttachmentDownloadError(MailboxError):
    """Attachment could not be fetched or written to disk."""

    code = "ATTACHMENT_DOWNLOAD_ERROR"
    default_message = "Could not download attachment"


class MailSendError(MailboxError):
    """Outgoing message could not be delivered to the mail server."""

    code = "MAIL_SEND_ERROR"
    default_message = "Could not send message"


# =============================================================================
# Pairing Errors
# =============================================================================


class PairingError(AutobiographiesError):
    """Base error for pairing table operations."""

    code = "PAIRING_ERROR"
    default_message = "Pairing operation failed"


class PairingStoreCorruptedError(PairingError):
    """Persisted pairing table exists but cannot be parsed.

    Never silently discarded: losing the table would re-assign reviewers and
    re-send feedback that was already delivered.
    """

    code = "PAIRING_STORE_CORRUPTED"
    default_message = "Pairing table is corrupted"
    recoverable = False


class InvalidPairingTransitionError(PairingError, ValueError):
    """Raised when a pairing is moved to a state its current state forbids."""

    code = "INVALID_PAIRING_TRANSITION"
    default_message = "Invalid pairing state transition"
    recoverable = False


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(AutobiographiesError):
    """Base error for configuration issues."""

    code = "CONFIGURATION_ERROR"
    default_message = "Configuration error"
    recoverable = True


class InvalidConfigError(ConfigurationError):
    """Configuration is invalid."""

    code = "INVALID_CONFIG"
    default_message = "Invalid configuration"


class MissingConfigError(ConfigurationError):
    """Required configuration is missing."""

    code = "MISSING_CONFIG"
    default_message = "Missing required configuration"


# =============================================================================
# Error Handler
# =============================================================================


def handle_error(error: Exception) -> str:
    """Handle an error and return a user-friendly message.

    Args:
        error: The exception to handle

    Returns:
        User-friendly error message with recovery suggestion
    """
    return format_error_for_user(error)


def is_recoverable(error: Exception) -> bool:
    """Check if an error is potentially recoverable.

    Args:
        error: The exception to check

    Returns:
        True if the error is recoverable
    """
    if isinstance(error, AutobiographiesError):
        return error.recoverable
    return False


__all__ = [
    # Base
    "AutobiographiesError",
    # Mailbox
    "MailboxError",
    "MailboxFetchError",
    "AttachmentDownloadError",
    "MailSendError",
    # Pairing
    "PairingError",
    "PairingStoreCorruptedError",
    "InvalidPairingTransitionError",
    # Configuration
    "ConfigurationError",
    "InvalidConfigError",
    "MissingConfigError",
    # Handlers
    "handle_error",
    "is_recoverable",
]
