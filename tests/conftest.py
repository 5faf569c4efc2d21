"""Shared fixtures: an in-memory mailbox and router wiring."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Set

import pytest

from autobiographies.configuration.settings import RoutingSettings
from autobiographies.errors import (
    AttachmentDownloadError,
    MailboxFetchError,
    MailSendError,
)
from autobiographies.mailing.models import AttachmentRef, Message
from autobiographies.pairing.models import AutobiographyPairing
from autobiographies.pairing.store import PairingStore
from autobiographies.routing.router import SubmissionRouter
from autobiographies.users.roster import Roster


@dataclass
class SentMail:
    recipient: str
    attachment_path: Path
    subject: str
    body: str


class FakeMailbox:
    """Mailbox double that keeps messages in memory and records sends."""

    def __init__(self, messages: Optional[List[Message]] = None) -> None:
        self.messages: List[Message] = list(messages or [])
        self.sent: List[SentMail] = []
        self.downloaded: List[str] = []
        self.listing_calls: List[bool] = []
        self.fail_listing = False
        self.fail_downloads: Set[str] = set()
        self.fail_sends_to: Set[str] = set()
        self.crash_sends_to: Set[str] = set()
        self.crash_after_sending_to: Set[str] = set()

    def list_candidates(self, attachments_only: bool = True) -> List[Message]:
        self.listing_calls.append(attachments_only)
        if self.fail_listing:
            raise MailboxFetchError("connection refused")
        return [m for m in self.messages if m.has_attachment or not attachments_only]

    def download_attachment(self, message: Message, destination_dir: Path) -> Path:
        if message.provider_message_id in self.fail_downloads:
            raise AttachmentDownloadError(f"cannot fetch {message.provider_message_id}")
        assert message.attachment is not None
        path = Path(destination_dir) / (
            f"{message.provider_message_id}.{message.attachment.extension}"
        )
        path.write_bytes(f"content of {message.provider_message_id}".encode())
        self.downloaded.append(message.provider_message_id)
        return path

    def send(self, recipient: str, attachment_path: Path, subject: str, body: str) -> None:
        if recipient in self.crash_sends_to:
            raise RuntimeError("smtp client exploded")
        if recipient in self.fail_sends_to:
            raise MailSendError(f"rejected by {recipient}")
        self.sent.append(SentMail(recipient, Path(attachment_path), subject, body))
        if recipient in self.crash_after_sending_to:
            raise RuntimeError("connection dropped after delivery")

    def recipients(self) -> List[str]:
        return [mail.recipient for mail in self.sent]


def make_message(
    sender: str,
    subject: str,
    message_id: str,
    extension: Optional[str] = "docx",
) -> Message:
    attachment = (
        AttachmentRef(id="0", extension=extension, filename=f"file.{extension}")
        if extension is not None
        else None
    )
    return Message(
        sender=sender,
        subject=subject,
        provider_message_id=message_id,
        attachment=attachment,
    )


def make_pairing(author: str, reviewer: str, *, closed: bool = False) -> AutobiographyPairing:
    return AutobiographyPairing(
        author=author, reviewer=reviewer, autobiography_sent=True, feedback_sent=closed
    )


@pytest.fixture
def mailbox() -> FakeMailbox:
    return FakeMailbox()


@pytest.fixture
def roster() -> Roster:
    return Roster(["a@x", "b@x", "c@x"])


@pytest.fixture
def store(tmp_path: Path) -> PairingStore:
    return PairingStore(tmp_path / "data" / "pairings.json")


@pytest.fixture
def routing() -> RoutingSettings:
    return RoutingSettings()


@pytest.fixture
def make_router(
    tmp_path: Path,
    mailbox: FakeMailbox,
    roster: Roster,
    store: PairingStore,
    routing: RoutingSettings,
) -> Callable[..., SubmissionRouter]:
    def factory(
        *,
        pairings: Optional[List[AutobiographyPairing]] = None,
        roster_override: Optional[Roster] = None,
        store_override: Optional[PairingStore] = None,
    ) -> SubmissionRouter:
        return SubmissionRouter(
            roster=roster_override if roster_override is not None else roster,
            mailbox=mailbox,
            store=store_override if store_override is not None else store,
            routing=routing,
            autobiographies_dir=tmp_path / "attachments" / "autobiographies",
            feedback_dir=tmp_path / "attachments" / "feedback",
            pairings=pairings if pairings is not None else [],
        )

    return factory


@pytest.fixture
def message() -> Callable[..., Message]:
    return make_message


@pytest.fixture
def pairing() -> Callable[..., AutobiographyPairing]:
    return make_pairing
