"""Mail provider access."""

from .imap_mailbox import ImapSmtpMailbox
from .mailbox import Mailbox
from .models import AttachmentRef, Message

__all__ = ["AttachmentRef", "ImapSmtpMailbox", "Mailbox", "Message"]
