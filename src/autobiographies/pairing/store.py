"""Durable pairing table.

The table is a pretty-printed JSON array of pairing objects, rewritten
wholesale on every flush. Writes go to a temporary sibling file which then
atomically replaces the table, under a file lock, so a crash never leaves a
truncated table behind.
"""

from __future__ import annotations

import json
import logging
import os
from collections import Counter
from pathlib import Path
from typing import Iterable, List

from filelock import FileLock
from pydantic import ValidationError

from autobiographies.errors import PairingStoreCorruptedError

from .models import AutobiographyPairing

logger = logging.getLogger(__name__)


class PairingStore:
    """File-backed store for :class:`AutobiographyPairing` records."""

    def __init__(self, path: Path, *, lock_timeout: int = 10) -> None:
        """Initialize pairing store.

        Args:
            path: Path to the JSON pairing table
            lock_timeout: Seconds to wait for the file lock
        """
        self._path = Path(path).expanduser()
        self._lock_timeout = lock_timeout

    @property
    def path(self) -> Path:
        return self._path

    def _lock_path(self) -> Path:
        return self._path.with_name(self._path.name + ".lock")

    def load(self) -> List[AutobiographyPairing]:
        """Read every persisted pairing.

        Returns:
            Pairings in file order; empty on first run (no file yet)

        Raises:
            PairingStoreCorruptedError: If the file exists but cannot be parsed
        """
        if not self._path.exists():
            logger.info(
                "No pairing table yet; starting empty",
                extra={"pairings_path": str(self._path)},
            )
            return []

        with FileLock(str(self._lock_path()), timeout=self._lock_timeout):
            raw = self._path.read_text(encoding="utf-8")

        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise PairingStoreCorruptedError(
                f"Pairing table {self._path} is not valid JSON: {exc}",
                details={"path": str(self._path)},
            ) from exc

        if not isinstance(payload, list):
            raise PairingStoreCorruptedError(
                f"Pairing table {self._path} must contain a JSON array",
                details={"path": str(self._path)},
            )

        pairings: List[AutobiographyPairing] = []
        for index, item in enumerate(payload):
            try:
                pairings.append(AutobiographyPairing.model_validate(item))
            except ValidationError as exc:
                raise PairingStoreCorruptedError(
                    f"Pairing #{index} in {self._path} is invalid: {exc}",
                    details={"path": str(self._path), "index": index},
                ) from exc

        _warn_on_invariant_violations(pairings)
        logger.info(
            f"Loaded {len(pairings)} pairings",
            extra={"pairings_path": str(self._path), "pairing_count": len(pairings)},
        )
        return pairings

    def flush(self, pairings: Iterable[AutobiographyPairing]) -> bool:
        """Overwrite the table with ``pairings``.

        An empty set is never written, so an in-memory table that was not
        loaded yet cannot wipe a saved one.

        Returns:
            True if the table was written
        """
        records = [
            pairing.model_dump(mode="json", exclude_none=True) for pairing in pairings
        ]
        if not records:
            logger.debug("Skipping flush of empty pairing table")
            return False

        self._path.parent.mkdir(parents=True, exist_ok=True)
        with FileLock(str(self._lock_path()), timeout=self._lock_timeout):
            tmp = self._path.with_name(self._path.name + ".tmp")
            tmp.write_text(serialize(records), encoding="utf-8")
            os.replace(tmp, self._path)

        logger.info(
            f"Saved {len(records)} pairings",
            extra={"pairings_path": str(self._path), "pairing_count": len(records)},
        )
        return True


def serialize(records: list) -> str:
    return json.dumps(records, indent=2, ensure_ascii=False) + "\n"


def _warn_on_invariant_violations(pairings: List[AutobiographyPairing]) -> None:
    busy = Counter(p.reviewer for p in pairings if p.is_active)
    for reviewer, count in busy.items():
        if count > 1:
            logger.warning(
                f"Reviewer {reviewer} holds {count} active pairings",
                extra={"pairing_reviewer": reviewer, "active_count": count},
            )


__all__ = ["PairingStore", "serialize"]
