"""Tests for the processed-ticket ledger."""

import json
import threading
from unittest.mock import patch

import pytest

from ai_intern.core.state import ProcessedStore


def test_mark_persists_immediately(tmp_path):
    path = tmp_path / "agent_state.json"
    store = ProcessedStore(path)

    store.mark_processed("PROJ-12")

    assert json.loads(path.read_text()) == {"processed": {"PROJ-12": True}}


def test_round_trip_across_instances(tmp_path):
    path = tmp_path / "agent_state.json"
    first = ProcessedStore(path)
    first.mark_processed("PROJ-1")
    first.mark_processed("PROJ-2")

    second = ProcessedStore(path)
    assert second.load() is True

    assert second.is_processed("PROJ-1")
    assert second.is_processed("PROJ-2")
    assert not second.is_processed("PROJ-3")
    assert second.processed_keys() == ["PROJ-1", "PROJ-2"]
    assert len(second) == 2


def test_missing_file_starts_empty(tmp_path):
    store = ProcessedStore(tmp_path / "nope.json")

    assert store.load() is False
    assert len(store) == 0


@pytest.mark.parametrize("content", ["{not json", "[1, 2]", '{"processed": []}'])
def test_corrupt_file_is_not_fatal(tmp_path, content):
    path = tmp_path / "agent_state.json"
    path.write_text(content)
    store = ProcessedStore(path)
    store.load()

    assert store.processed_keys() == []


def test_false_entries_are_not_processed(tmp_path):
    path = tmp_path / "agent_state.json"
    path.write_text(json.dumps({"processed": {"PROJ-1": True, "PROJ-2": False}}))
    store = ProcessedStore(path)
    store.load()

    assert store.processed_keys() == ["PROJ-1"]


def test_failed_write_rolls_back_mark(tmp_path):
    store = ProcessedStore(tmp_path / "agent_state.json")

    with patch("ai_intern.core.state.atomic_write_json", side_effect=OSError("disk full")):
        with pytest.raises(OSError):
            store.mark_processed("PROJ-9")

    assert not store.is_processed("PROJ-9")


def test_concurrent_marks_all_persist(tmp_path):
    path = tmp_path / "agent_state.json"
    store = ProcessedStore(path)

    threads = [threading.Thread(target=store.mark_processed, args=(f"PROJ-{i}",)) for i in range(20)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(json.loads(path.read_text())["processed"]) == 20
