"""Autobiography pairing model and its state machine.

A pairing links the author of an autobiography to the reviewer chosen to give
feedback on it. Its lifecycle is expressed as an explicit status derived from
the two persisted flags::

    AWAITING_REVIEWER_DELIVERY --(autobiography sent)--> AWAITING_FEEDBACK
    AWAITING_FEEDBACK          --(feedback sent)------> CLOSED

Only the flags mutate after creation; author and reviewer are fixed. A closed
pairing never reopens.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Iterable, Optional, Set

from pydantic import BaseModel, Field, field_validator, model_validator

from autobiographies.errors import InvalidPairingTransitionError

logger = logging.getLogger(__name__)


class PairingStatus(str, Enum):
    """Pairing lifecycle states."""

    AWAITING_REVIEWER_DELIVERY = "awaiting_reviewer_delivery"
    AWAITING_FEEDBACK = "awaiting_feedback"  # Active: consumes reviewer capacity
    CLOSED = "closed"


VALID_TRANSITIONS: Dict[PairingStatus, Set[PairingStatus]] = {
    PairingStatus.AWAITING_REVIEWER_DELIVERY: {PairingStatus.AWAITING_FEEDBACK},
    PairingStatus.AWAITING_FEEDBACK: {PairingStatus.CLOSED},
    PairingStatus.CLOSED: set(),
}


class AutobiographyPairing(BaseModel):
    """Persistent record of one author/reviewer assignment."""

    author: str = Field(..., description="Address that submitted the autobiography")
    reviewer: str = Field(..., description="Address assigned to give feedback")
    autobiography_sent: bool = Field(
        default=False, description="Autobiography forwarded to the reviewer"
    )
    feedback_sent: bool = Field(
        default=False, description="Feedback forwarded back to the author"
    )
    autobiography_file: Optional[str] = Field(
        default=None, description="Stored autobiography attachment filename"
    )
    feedback_file: Optional[str] = Field(
        default=None, description="Stored feedback attachment filename"
    )
    created_at: Optional[datetime] = Field(default=None)
    feedback_sent_at: Optional[datetime] = Field(default=None)

    @field_validator("author", "reviewer")
    @classmethod
    def _normalize_address(cls, value: str) -> str:  # type: ignore[override]
        value = value.strip().lower()
        if "@" not in value:
            raise ValueError(f"Invalid email address: {value}")
        return value

    @model_validator(mode="after")
    def _validate_consistency(self) -> "AutobiographyPairing":
        if self.author == self.reviewer:
            raise ValueError("author and reviewer must differ")
        if self.feedback_sent and not self.autobiography_sent:
            raise ValueError("feedback cannot be sent before the autobiography")
        return self

    @classmethod
    def for_assignment(cls, *, author: str, reviewer: str) -> "AutobiographyPairing":
        """Build a pending record for a freshly chosen reviewer.

        Validates the pair before anything is sent; the router appends it to
        the table only after :meth:`mark_autobiography_sent`.
        """

        return cls(author=author, reviewer=reviewer, created_at=utc_now())

    @property
    def status(self) -> PairingStatus:
        if self.feedback_sent:
            return PairingStatus.CLOSED
        if self.autobiography_sent:
            return PairingStatus.AWAITING_FEEDBACK
        return PairingStatus.AWAITING_REVIEWER_DELIVERY

    @property
    def is_active(self) -> bool:
        return self.status == PairingStatus.AWAITING_FEEDBACK

    def mark_autobiography_sent(self, *, autobiography_file: Optional[str] = None) -> None:
        self._transition(PairingStatus.AWAITING_FEEDBACK)
        self.autobiography_sent = True
        if autobiography_file:
            self.autobiography_file = autobiography_file

    def mark_feedback_sent(self, *, feedback_file: Optional[str] = None) -> None:
        self._transition(PairingStatus.CLOSED)
        self.feedback_sent = True
        self.feedback_sent_at = utc_now()
        if feedback_file:
            self.feedback_file = feedback_file

    def _transition(self, target: PairingStatus) -> None:
        current = self.status
        if target not in VALID_TRANSITIONS[current]:
            raise InvalidPairingTransitionError(
                f"Cannot move pairing {self.author} -> {self.reviewer} "
                f"from {current.value} to {target.value}",
                details={
                    "author": self.author,
                    "reviewer": self.reviewer,
                    "from_status": current.value,
                    "to_status": target.value,
                },
            )
        logger.debug(
            "Pairing transition",
            extra={
                "pairing_author": self.author,
                "pairing_reviewer": self.reviewer,
                "from_status": current.value,
                "to_status": target.value,
            },
        )

    def __str__(self) -> str:
        return f"{{ {self.author} -> {self.reviewer}, {self.status.value} }}"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def active_reviewers(pairings: Iterable[AutobiographyPairing]) -> Set[str]:
    """Reviewers currently holding an unresolved feedback obligation."""

    return {p.reviewer for p in pairings if p.is_active}


__all__ = [
    "AutobiographyPairing",
    "PairingStatus",
    "VALID_TRANSITIONS",
    "active_reviewers",
    "utc_now",
]
