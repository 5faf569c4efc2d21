"""Registered-user roster.

The roster is a flat JSON list of email addresses, read once at startup. Its
order matters: the router scans it front to back when picking a reviewer.
A missing or malformed roster file leaves the roster empty; the failure is
logged and the polling loop keeps running with no eligible users.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)


class Roster:
    """Read-only, ordered set of participant addresses."""

    def __init__(self, addresses: Optional[Iterable[str]] = None) -> None:
        self._addresses: List[str] = []
        seen = set()
        for address in addresses or []:
            normalized = normalize_address(address)
            if not normalized or normalized in seen:
                continue
            if not is_address(normalized):
                logger.warning(
                    f"Ignoring roster entry {normalized!r}: not an e-mail address",
                    extra={"roster_entry": normalized},
                )
                continue
            seen.add(normalized)
            self._addresses.append(normalized)
        self._lookup = frozenset(self._addresses)

    @classmethod
    def from_file(cls, path: Path) -> "Roster":
        """Load the roster from ``path``; never raises."""

        logger.info(
            "Reading registered users", extra={"roster_path": str(path)}
        )
        try:
            payload = json.loads(Path(path).read_text(encoding="utf-8"))
        except FileNotFoundError:
            logger.error(
                "Roster file not found; no users are eligible",
                extra={"roster_path": str(path)},
            )
            return cls()
        except (OSError, json.JSONDecodeError) as exc:
            logger.error(
                f"Could not read roster file: {exc}",
                exc_info=exc,
                extra={"roster_path": str(path)},
            )
            return cls()

        if not isinstance(payload, list) or not all(
            isinstance(item, str) for item in payload
        ):
            logger.error(
                "Roster file must be a JSON list of email addresses",
                extra={"roster_path": str(path)},
            )
            return cls()

        roster = cls(payload)
        logger.info(
            f"Read {len(roster)} registered users",
            extra={"roster_path": str(path), "roster_size": len(roster)},
        )
        return roster

    def contains(self, address: str) -> bool:
        return normalize_address(address) in self._lookup

    def all(self) -> List[str]:
        """Addresses in file order."""
        return list(self._addresses)

    def __contains__(self, address: object) -> bool:
        return isinstance(address, str) and self.contains(address)

    def __iter__(self):
        return iter(self._addresses)

    def __len__(self) -> int:
        return len(self._addresses)


def normalize_address(address: str) -> str:
    return address.strip().lower()


def is_address(address: str) -> bool:
    local, at, domain = address.partition("@")
    return bool(local and at and domain) and "@" not in domain and " " not in address


__all__ = ["Roster", "is_address", "normalize_address"]
