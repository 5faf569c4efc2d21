"""User-friendly error messages for the autobiography exchange.

Operators see these from the CLI instead of raw tracebacks. Messages never
include attachment content or credentials.
"""

from __future__ import annotations

from typing import Any


# =============================================================================
# Error Message Catalog
# =============================================================================

ERROR_MESSAGES: dict[str, str] = {
    # Mailbox errors
    "MAILBOX_ERROR": "The mail server reported a problem.",
    "MAILBOX_FETCH_ERROR": "Could not read the inbox. This polling round was skipped.",
    "ATTACHMENT_DOWNLOAD_ERROR": "An attachment could not be downloaded.",
    "MAIL_SEND_ERROR": "A message could not be sent.",
    # Pairing errors
    "PAIRING_ERROR": "The pairing table could not be updated.",
    "PAIRING_STORE_CORRUPTED": "The saved pairing table is unreadable. Refusing to start.",
    "INVALID_PAIRING_TRANSITION": "A pairing was asked to move to an impossible state.",
    # Configuration errors
    "CONFIGURATION_ERROR": "There's a configuration issue.",
    "INVALID_CONFIG": "The configuration is invalid. Check settings.",
    "MISSING_CONFIG": "Required configuration is missing.",
    # Generic
    "AUTOBIOGRAPHIES_ERROR": "An unexpected error occurred. Please try again.",
    "UNKNOWN_ERROR": "Something went wrong. Please try again.",
}


# =============================================================================
# Recovery Suggestions
# =============================================================================

RECOVERY_SUGGESTIONS: dict[str, str] = {
    # Mailbox errors
    "MAILBOX_ERROR": "Check the mail server settings: autobiographies config show",
    "MAILBOX_FETCH_ERROR": "Verify network access and the IMAP credentials. The next round retries automatically.",
    "ATTACHMENT_DOWNLOAD_ERROR": "Check free disk space in the attachments directory. The message is retried next round.",
    "MAIL_SEND_ERROR": "Verify the SMTP host and credentials. The message is retried next round.",
    # Pairing errors
    "PAIRING_ERROR": "Check file permissions on the data directory.",
    "PAIRING_STORE_CORRUPTED": "Restore pairings.json from a backup or repair it by hand before restarting.",
    "INVALID_PAIRING_TRANSITION": "Inspect the pairing table with: autobiographies pairings",
    # Configuration errors
    "CONFIGURATION_ERROR": "Check config: autobiographies config show",
    "INVALID_CONFIG": "Regenerate a template with: autobiographies config init --force",
    "MISSING_CONFIG": "Create a configuration with: autobiographies config init",
    # Generic
    "AUTOBIOGRAPHIES_ERROR": "If this persists, check the log file for details.",
    "UNKNOWN_ERROR": "Try restarting the service. Check the log file if the issue continues.",
}


# =============================================================================
# Helper Functions
# =============================================================================


def _error_code(error: Any) -> str:
    if hasattr(error, "code"):
        return error.code
    if isinstance(error, str):
        return error
    return type(error).__name__.upper()


def get_user_message(error: Any) -> str:
    """Get user-friendly message for an error.

    Args:
        error: The error (can be Exception or error code string)

    Returns:
        User-friendly error message
    """
    return ERROR_MESSAGES.get(_error_code(error), ERROR_MESSAGES["UNKNOWN_ERROR"])


def get_recovery_suggestion(error: Any) -> str:
    """Get recovery suggestion for an error."""
    return RECOVERY_SUGGESTIONS.get(
        _error_code(error), RECOVERY_SUGGESTIONS["UNKNOWN_ERROR"]
    )


def format_error_for_user(error: Any) -> str:
    """Format a complete user-friendly error message.

    Args:
        error: The error to format

    Returns:
        Complete error message with recovery suggestion
    """
    message = get_user_message(error)
    suggestion = get_recovery_suggestion(error)

    return f"{message}\n\nSuggestion: {suggestion}"


def format_error_for_cli(error: Any) -> str:
    """Format error for CLI output.

    Args:
        error: The error to format

    Returns:
        CLI-formatted error message
    """
    code = getattr(error, "code", "ERROR")

    lines = [
        f"Error [{code}]: {get_user_message(error)}",
        "",
        f"Suggestion: {get_recovery_suggestion(error)}",
    ]

    if getattr(error, "details", None):
        lines.append("")
        lines.append("Details:")
        for key, value in error.details.items():
            # Don't expose credentials
            if key not in ("password", "token"):
                lines.append(f"  {key}: {value}")

    return "\n".join(lines)


__all__ = [
    "ERROR_MESSAGES",
    "RECOVERY_SUGGESTIONS",
    "get_user_message",
    "get_recovery_suggestion",
    "format_error_for_user",
    "format_error_for_cli",
]
