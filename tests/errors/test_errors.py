"""Tests for the error hierarchy and user-facing messages."""

from __future__ import annotations

import pytest

from autobiographies.errors import (
    AttachmentDownloadError,
    AutobiographiesError,
    InvalidConfigError,
    InvalidPairingTransitionError,
    MailboxError,
    MailboxFetchError,
    MailSendError,
    MissingConfigError,
    PairingStoreCorruptedError,
    handle_error,
    is_recoverable,
)
from autobiographies.errors.user_messages import (
    ERROR_MESSAGES,
    RECOVERY_SUGGESTIONS,
    format_error_for_cli,
    get_recovery_suggestion,
    get_user_message,
)


@pytest.mark.parametrize(
    "error_cls",
    [MailboxFetchError, AttachmentDownloadError, MailSendError],
)
def test_mailbox_errors_are_recoverable(error_cls) -> None:
    error = error_cls("boom")

    assert isinstance(error, MailboxError)
    assert is_recoverable(error)


def test_corruption_is_fatal() -> None:
    assert not is_recoverable(PairingStoreCorruptedError("bad table"))
    assert not is_recoverable(ValueError("plain"))


def test_invalid_transition_is_value_error() -> None:
    assert isinstance(InvalidPairingTransitionError(), ValueError)


def test_default_message_used_when_none_given() -> None:
    error = MissingConfigError()

    assert error.message == "Missing required configuration"
    assert str(error) == "Missing required configuration"


def test_to_dict() -> None:
    error = MailSendError("smtp said no", details={"recipient": "b@x"})

    assert error.to_dict() == {
        "code": "MAIL_SEND_ERROR",
        "message": "smtp said no",
        "user_message": ERROR_MESSAGES["MAIL_SEND_ERROR"],
        "recoverable": True,
        "details": {"recipient": "b@x"},
    }


def test_user_message_override() -> None:
    error = AutobiographiesError("internal", user_message="Shown to operator")

    assert error.user_message == "Shown to operator"


def test_every_code_has_message_and_suggestion() -> None:
    assert set(ERROR_MESSAGES) == set(RECOVERY_SUGGESTIONS)
    for cls in (
        MailboxFetchError,
        AttachmentDownloadError,
        MailSendError,
        PairingStoreCorruptedError,
        InvalidPairingTransitionError,
        InvalidConfigError,
        MissingConfigError,
    ):
        assert cls.code in ERROR_MESSAGES


def test_unknown_errors_fall_back() -> None:
    assert get_user_message(KeyError("x")) == ERROR_MESSAGES["UNKNOWN_ERROR"]
    assert get_recovery_suggestion("NOT_A_CODE") == RECOVERY_SUGGESTIONS["UNKNOWN_ERROR"]


def test_handle_error_includes_suggestion() -> None:
    text = handle_error(MissingConfigError())

    assert ERROR_MESSAGES["MISSING_CONFIG"] in text
    assert "Suggestion: " + RECOVERY_SUGGESTIONS["MISSING_CONFIG"] in text


def test_cli_format_hides_credentials() -> None:
    error = InvalidConfigError(
        "bad", details={"path": "/tmp/config.json", "password": "hunter2"}
    )

    text = format_error_for_cli(error)

    assert text.startswith("Error [INVALID_CONFIG]:")
    assert "path: /tmp/config.json" in text
    assert "hunter2" not in text
