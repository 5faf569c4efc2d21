"""Per-item and per-tick results of the submission router.

Expected per-item failures (no reviewer, failed download, failed send, ...)
are reported as values instead of exceptions; exceptions remain reserved for
corrupted state and configuration problems.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class SubmissionKind(str, Enum):
    AUTOBIOGRAPHY = "autobiography"
    FEEDBACK = "feedback"


class SkipReason(str, Enum):
    """Why a candidate did not advance during a tick."""

    DOWNLOAD_FAILED = "download_failed"
    NO_REVIEWER = "no_reviewer"
    SEND_FAILED = "send_failed"
    NO_PAIRING = "no_pairing"
    UNEXPECTED_ERROR = "unexpected_error"


class ItemOutcome(BaseModel):
    """What happened to one candidate message."""

    kind: SubmissionKind
    sender: str
    message_id: str
    routed: bool = False
    recipient: Optional[str] = Field(default=None, description="Forwarded to")
    reason: Optional[SkipReason] = None
    detail: Optional[str] = None

    @classmethod
    def routed_to(
        cls, kind: SubmissionKind, sender: str, message_id: str, recipient: str
    ) -> "ItemOutcome":
        return cls(
            kind=kind,
            sender=sender,
            message_id=message_id,
            routed=True,
            recipient=recipient,
        )

    @classmethod
    def skipped(
        cls,
        kind: SubmissionKind,
        sender: str,
        message_id: str,
        reason: SkipReason,
        detail: Optional[str] = None,
    ) -> "ItemOutcome":
        return cls(
            kind=kind,
            sender=sender,
            message_id=message_id,
            reason=reason,
            detail=detail,
        )


class TickResult(BaseModel):
    """Summary of one tick."""

    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    candidates: int = Field(default=0, ge=0, description="Messages listed")
    outcomes: List[ItemOutcome] = Field(default_factory=list)
    flushed: bool = Field(default=False, description="Pairing table written")
    error: Optional[str] = Field(default=None, description="Listing failure")
    flush_error: Optional[str] = Field(default=None, description="Save failure")

    @property
    def aborted(self) -> bool:
        return self.error is not None

    @property
    def routed(self) -> List[ItemOutcome]:
        return [outcome for outcome in self.outcomes if outcome.routed]

    @property
    def skipped(self) -> List[ItemOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.routed]

    @property
    def has_changes(self) -> bool:
        return bool(self.routed)


__all__ = ["ItemOutcome", "SkipReason", "SubmissionKind", "TickResult"]
