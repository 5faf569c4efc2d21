"""Mailbox interface consumed by the submission router."""

from __future__ import annotations

from pathlib import Path
from typing import List, Protocol, runtime_checkable

from .models import Message


@runtime_checkable
class Mailbox(Protocol):
    """Mail provider operations the router depends on.

    Implementations raise :class:`~autobiographies.errors.MailboxFetchError`,
    :class:`~autobiographies.errors.AttachmentDownloadError` and
    :class:`~autobiographies.errors.MailSendError` respectively.
    """

    def list_candidates(self, attachments_only: bool = True) -> List[Message]:
        ...

    def download_attachment(self, message: Message, destination_dir: Path) -> Path:
        ...

    def send(
        self,
        recipient: str,
        attachment_path: Path,
        subject: str,
        body: str,
    ) -> None:
        ...


__all__ = ["Mailbox"]
