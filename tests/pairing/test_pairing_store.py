"""Tests for the JSON pairing table."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from autobiographies.errors import PairingStoreCorruptedError
from autobiographies.pairing.models import AutobiographyPairing
from autobiographies.pairing.store import PairingStore


@pytest.fixture
def pairings():
    first = AutobiographyPairing.for_assignment(author="a@x", reviewer="b@x")
    first.mark_autobiography_sent(autobiography_file="1.docx")
    second = AutobiographyPairing.for_assignment(author="c@x", reviewer="a@x")
    second.mark_autobiography_sent()
    second.mark_feedback_sent(feedback_file="2.pdf")
    return [first, second]


def test_load_missing_file_returns_empty(tmp_path: Path) -> None:
    store = PairingStore(tmp_path / "pairings.json")

    assert store.load() == []


def test_flush_then_load_round_trip(tmp_path: Path, pairings) -> None:
    store = PairingStore(tmp_path / "nested" / "pairings.json")

    assert store.flush(pairings) is True

    assert store.load() == pairings


def test_reflush_of_loaded_table_is_byte_stable(tmp_path: Path, pairings) -> None:
    store = PairingStore(tmp_path / "pairings.json")
    store.flush(pairings)
    before = store.path.read_bytes()

    store.flush(store.load())

    assert store.path.read_bytes() == before


def test_timestamps_saved_in_utc(tmp_path: Path, pairings) -> None:
    store = PairingStore(tmp_path / "pairings.json")
    store.flush(pairings)

    saved = json.loads(store.path.read_text(encoding="utf-8"))

    assert saved[0]["created_at"].endswith(("Z", "+00:00"))
    assert saved[1]["feedback_sent_at"].endswith(("Z", "+00:00"))


def test_naive_timestamps_reflush_unchanged(tmp_path: Path) -> None:
    path = tmp_path / "pairings.json"
    records = [
        {
            "author": "a@x",
            "reviewer": "b@x",
            "autobiography_sent": True,
            "feedback_sent": False,
            "created_at": "2024-05-01T10:00:00",
        }
    ]
    path.write_text(json.dumps(records, indent=2) + "\n", encoding="utf-8")
    before = path.read_bytes()
    store = PairingStore(path)

    store.flush(store.load())

    assert path.read_bytes() == before


def test_minimal_records_stay_minimal(tmp_path: Path) -> None:
    path = tmp_path / "pairings.json"
    records = [
        {
            "author": "a@x",
            "reviewer": "b@x",
            "autobiography_sent": True,
            "feedback_sent": False,
        }
    ]
    path.write_text(json.dumps(records, indent=2) + "\n", encoding="utf-8")
    store = PairingStore(path)

    store.flush(store.load())

    assert json.loads(path.read_text(encoding="utf-8")) == records


def test_flush_of_empty_set_keeps_existing_table(tmp_path: Path, pairings) -> None:
    store = PairingStore(tmp_path / "pairings.json")
    store.flush(pairings)

    assert store.flush([]) is False

    assert len(store.load()) == 2


def test_flush_of_empty_set_creates_nothing(tmp_path: Path) -> None:
    store = PairingStore(tmp_path / "pairings.json")

    store.flush([])

    assert not store.path.exists()


def test_flush_leaves_no_temporary_file(tmp_path: Path, pairings) -> None:
    store = PairingStore(tmp_path / "pairings.json")

    store.flush(pairings)

    assert not (tmp_path / "pairings.json.tmp").exists()


def test_file_format_is_human_readable(tmp_path: Path, pairings) -> None:
    store = PairingStore(tmp_path / "pairings.json")
    store.flush(pairings)

    text = store.path.read_text(encoding="utf-8")
    data = json.loads(text)

    assert text.startswith("[\n  {")
    assert data[0]["author"] == "a@x"
    assert data[0]["autobiography_sent"] is True
    assert data[0]["feedback_sent"] is False
    assert data[1]["feedback_sent"] is True


@pytest.mark.parametrize(
    "content",
    [
        "{not json",
        '{"author": "a@x"}',
        '[{"author": "a@x", "reviewer": "a@x", "autobiography_sent": true}]',
        '[{"author": "a@x"}]',
    ],
)
def test_corrupted_table_raises(tmp_path: Path, content: str) -> None:
    path = tmp_path / "pairings.json"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(PairingStoreCorruptedError) as excinfo:
        PairingStore(path).load()

    assert excinfo.value.recoverable is False
    assert excinfo.value.details["path"] == str(path)


def test_invalid_item_reports_index(tmp_path: Path) -> None:
    path = tmp_path / "pairings.json"
    path.write_text(
        json.dumps(
            [
                {"author": "a@x", "reviewer": "b@x", "autobiography_sent": True},
                {"author": "c@x", "reviewer": "c@x"},
            ]
        ),
        encoding="utf-8",
    )

    with pytest.raises(PairingStoreCorruptedError) as excinfo:
        PairingStore(path).load()

    assert excinfo.value.details["index"] == 1


def test_double_booked_reviewer_is_warned_about(tmp_path: Path, caplog) -> None:
    path = tmp_path / "pairings.json"
    path.write_text(
        json.dumps(
            [
                {"author": "a@x", "reviewer": "b@x", "autobiography_sent": True},
                {"author": "c@x", "reviewer": "b@x", "autobiography_sent": True},
            ]
        ),
        encoding="utf-8",
    )

    with caplog.at_level(logging.WARNING):
        pairings = PairingStore(path).load()

    assert len(pairings) == 2
    assert "holds 2 active pairings" in caplog.text
