"""Submission routing: the pairing state machine run once per tick."""

from .models import ItemOutcome, SkipReason, SubmissionKind, TickResult
from .router import SubmissionRouter

__all__ = [
    "ItemOutcome",
    "SkipReason",
    "SubmissionKind",
    "SubmissionRouter",
    "TickResult",
]
