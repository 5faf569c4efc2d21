"""Author/reviewer pairings and their persistence."""

from .models import (
    VALID_TRANSITIONS,
    AutobiographyPairing,
    PairingStatus,
    active_reviewers,
)
from .store import PairingStore

__all__ = [
    "AutobiographyPairing",
    "PairingStatus",
    "PairingStore",
    "VALID_TRANSITIONS",
    "active_reviewers",
]
