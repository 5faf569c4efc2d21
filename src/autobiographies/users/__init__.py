"""Registered participants."""

from .roster import Roster, is_address, normalize_address

__all__ = ["Roster", "is_address", "normalize_address"]
