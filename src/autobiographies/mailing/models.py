"""Inbound message models handed to the router by a mailbox."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, field_validator


class AttachmentRef(BaseModel):
    """Reference to the first attachment of a message (no content)."""

    id: str = Field(..., description="Provider attachment identifier")
    extension: str = Field(default="", description="Original file extension, no dot")
    filename: Optional[str] = Field(default=None, description="Original filename")

    @field_validator("extension")
    @classmethod
    def _strip_dot(cls, value: str) -> str:  # type: ignore[override]
        return value.strip().lstrip(".").lower()


class Message(BaseModel):
    """Read-only view of an inbox message."""

    sender: str = Field(..., description="Bare sender address")
    subject: str = Field(default="", description="Full subject line")
    provider_message_id: str = Field(..., description="Opaque provider id (IMAP UID)")
    attachment: Optional[AttachmentRef] = Field(default=None)

    @field_validator("sender")
    @classmethod
    def _normalize_sender(cls, value: str) -> str:  # type: ignore[override]
        return value.strip().lower()

    @property
    def has_attachment(self) -> bool:
        return self.attachment is not None

    def subject_has_tag(self, tag: str) -> bool:
        """Case-insensitive substring match over the whole subject."""
        return tag.casefold() in self.subject.casefold()

    def __str__(self) -> str:
        return f"{{ from [ {self.sender} ], titled {self.subject} }}"


__all__ = ["AttachmentRef", "Message"]
