"""IMAP/SMTP mailbox used in production.

Submissions are read over IMAP (TLS enforced, CA bundle from ``certifi``) and
forwarded over SMTP with SSL. Messages are fetched with ``BODY.PEEK[]`` so
polling never changes their seen flags, and a fresh connection is opened for
every operation: ticks are minutes apart, so pooling buys nothing.
"""

from __future__ import annotations

import logging
import mimetypes
import smtplib
import ssl
import uuid
from contextlib import contextmanager
from email import message_from_bytes
from email.message import EmailMessage, Message as StdMessage
from email.policy import default as email_policy
from email.utils import parseaddr
from pathlib import Path
from typing import Iterator, List, Optional

import certifi
from imapclient import IMAPClient

from autobiographies.configuration.settings import MailSettings
from autobiographies.errors import (
    AttachmentDownloadError,
    MailboxFetchError,
    MailSendError,
)

from .models import AttachmentRef, Message

logger = logging.getLogger(__name__)

_BODY_PEEK = b"BODY.PEEK[]"
_BODY = b"BODY[]"


class ImapSmtpMailbox:
    """:class:`~autobiographies.mailing.mailbox.Mailbox` over IMAP and SMTP."""

    def __init__(self, settings: MailSettings, password: str) -> None:
        self._settings = settings
        self._password = password

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def list_candidates(self, attachments_only: bool = True) -> List[Message]:
        """List inbox messages, skipping the ones the service sent itself."""

        logger.info(
            "Retrieving all e-mail messages",
            extra={"mail_folder": self._settings.folder},
        )
        try:
            with self._imap() as client:
                uids = client.search(["ALL"])
                if not uids:
                    return []
                fetched = client.fetch(uids, [_BODY_PEEK])
        except Exception as exc:  # noqa: BLE001
            raise MailboxFetchError(
                f"Listing {self._settings.folder} failed: {exc}",
                details={"folder": self._settings.folder},
            ) from exc

        messages: List[Message] = []
        for uid in sorted(fetched):
            try:
                message = self._to_message(uid, fetched[uid][_BODY])
            except Exception as exc:  # noqa: BLE001
                logger.error(
                    f"Could not parse message {uid}: {exc}",
                    exc_info=exc,
                    extra={"mail_uid": uid},
                )
                continue
            if message is None:
                continue
            if attachments_only and not message.has_attachment:
                continue
            messages.append(message)

        logger.info(
            f"Retrieved {len(messages)} e-mail messages",
            extra={"mail_folder": self._settings.folder, "message_count": len(messages)},
        )
        return messages

    def download_attachment(self, message: Message, destination_dir: Path) -> Path:
        """Save the first attachment of ``message`` under a fresh unique name."""

        if message.attachment is None:
            raise AttachmentDownloadError(
                f"{message} has no attachment to save",
                details={"message_id": message.provider_message_id},
            )

        destination_dir = Path(destination_dir)
        try:
            uid = int(message.provider_message_id)
            with self._imap() as client:
                fetched = client.fetch([uid], [_BODY_PEEK])
            if uid not in fetched:
                raise AttachmentDownloadError(
                    f"Message {uid} disappeared from {self._settings.folder}",
                    details={"message_id": message.provider_message_id},
                )

            parsed = message_from_bytes(fetched[uid][_BODY], policy=email_policy)
            parts = attachment_parts(parsed)
            index = int(message.attachment.id)
            if index >= len(parts):
                raise AttachmentDownloadError(
                    f"Attachment {index} missing from message {uid}",
                    details={"message_id": message.provider_message_id},
                )
            payload = parts[index].get_payload(decode=True)
            if payload is None:
                raise AttachmentDownloadError(
                    f"Attachment {index} of message {uid} has no content",
                    details={"message_id": message.provider_message_id},
                )

            destination_dir.mkdir(parents=True, exist_ok=True)
            path = destination_dir / unique_filename(message.attachment.extension)
            path.write_bytes(payload)
        except AttachmentDownloadError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise AttachmentDownloadError(
                f"Saving attachment of {message} failed: {exc}",
                details={"message_id": message.provider_message_id},
            ) from exc

        logger.info(
            f"Saved attachment at \"{path}\"",
            extra={"message_id": message.provider_message_id, "attachment_path": str(path)},
        )
        return path

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    def send(
        self,
        recipient: str,
        attachment_path: Path,
        subject: str,
        body: str,
    ) -> None:
        """Send ``attachment_path`` to ``recipient`` with an HTML body."""

        logger.info(f"Sending attachment to {recipient}")
        attachment_path = Path(attachment_path)
        try:
            mail = build_outgoing_message(
                sender=self._settings.address,
                recipient=recipient,
                subject=subject,
                body=body,
                attachment_path=attachment_path,
            )
            with smtplib.SMTP_SSL(
                self._settings.smtp_host,
                self._settings.smtp_port,
                timeout=self._settings.timeout_seconds,
                context=create_ssl_context(),
            ) as smtp:
                smtp.login(self._settings.login, self._password)
                smtp.send_message(mail)
        except (smtplib.SMTPException, OSError) as exc:
            raise MailSendError(
                f"Sending to {recipient} failed: {exc}",
                details={"recipient": recipient, "attachment": attachment_path.name},
            ) from exc

        logger.info(f"Sent attachment to {recipient}")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @contextmanager
    def _imap(self) -> Iterator[IMAPClient]:
        client = IMAPClient(
            host=self._settings.imap_host,
            port=self._settings.imap_port,
            ssl=True,
            ssl_context=create_ssl_context(),
            timeout=self._settings.timeout_seconds,
            use_uid=True,
        )
        try:
            client.login(self._settings.login, self._password)
            client.select_folder(self._settings.folder, readonly=True)
            yield client
        finally:
            try:
                client.logout()
            except Exception as exc:  # noqa: BLE001
                logger.warning("Error during logout", exc_info=exc)

    def _to_message(self, uid: int, raw: bytes) -> Optional[Message]:
        parsed = message_from_bytes(raw, policy=email_policy)
        sender = parseaddr(str(parsed.get("From", "")))[1].strip().lower()

        # No sender, or our own outgoing copy: ignore
        if not sender or sender == self._settings.address:
            return None

        return Message(
            sender=sender,
            subject=str(parsed.get("Subject", "")),
            provider_message_id=str(uid),
            attachment=first_attachment(parsed),
        )


def attachment_parts(parsed: StdMessage) -> List[StdMessage]:
    """Attachment parts carrying a filename, in MIME order."""

    if not parsed.is_multipart():
        return []
    return [part for part in parsed.iter_attachments() if part.get_filename()]


def first_attachment(parsed: StdMessage) -> Optional[AttachmentRef]:
    """Only the first attachment of a message is ever considered."""

    parts = attachment_parts(parsed)
    if not parts:
        return None
    filename = parts[0].get_filename() or ""
    return AttachmentRef(
        id="0",
        extension=Path(filename).suffix,
        filename=filename,
    )


def unique_filename(extension: str) -> str:
    name = uuid.uuid4().hex
    return f"{name}.{extension}" if extension else name


def build_outgoing_message(
    *,
    sender: str,
    recipient: str,
    subject: str,
    body: str,
    attachment_path: Path,
) -> EmailMessage:
    mail = EmailMessage()
    mail["Subject"] = subject
    mail["From"] = sender
    mail["To"] = recipient
    mail.set_content(body, subtype="html")

    content_type, _ = mimetypes.guess_type(attachment_path.name)
    maintype, subtype = (content_type or "application/octet-stream").split("/", 1)
    mail.add_attachment(
        attachment_path.read_bytes(),
        maintype=maintype,
        subtype=subtype,
        filename=attachment_path.name,
    )
    return mail


def create_ssl_context() -> ssl.SSLContext:
    context = ssl.create_default_context()
    context.load_verify_locations(certifi.where())
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    context.check_hostname = True
    context.verify_mode = ssl.CERT_REQUIRED
    return context


__all__ = [
    "ImapSmtpMailbox",
    "attachment_parts",
    "build_outgoing_message",
    "create_ssl_context",
    "first_attachment",
    "unique_filename",
]
