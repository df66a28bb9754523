"""Tests for JsonDocument."""

import json
from pathlib import Path

import pytest

from mycontext.core.errors import StaleWriteError
from mycontext.core.jsonstore import JsonDocument


@pytest.fixture
def doc(tmp_path: Path) -> JsonDocument:
    return JsonDocument(tmp_path / ".mycontext" / "context.json")


class TestJsonDocument:
    """Read, write and update semantics."""

    def test_missing_document_reads_none(self, doc: JsonDocument) -> None:
        assert doc.read() is None
        assert not doc.exists()

    def test_non_object_reads_none(self, doc: JsonDocument) -> None:
        doc.path.parent.mkdir(parents=True)
        doc.path.write_text("[1, 2]")
        assert doc.read() is None

    def test_invalid_json_raises(self, doc: JsonDocument) -> None:
        doc.path.parent.mkdir(parents=True)
        doc.path.write_text("{not json")
        with pytest.raises(json.JSONDecodeError):
            doc.read()

    def test_save_creates_directories(self, doc: JsonDocument) -> None:
        doc.save({"a": 1})
        assert json.loads(doc.path.read_text()) == {"a": 1}

    def test_write_leaves_no_temp_files(self, doc: JsonDocument) -> None:
        doc.save({"a": 1})
        doc.save({"a": 2})
        leftovers = [p.name for p in doc.path.parent.iterdir() if p.name.startswith(".tmp_")]
        assert leftovers == []

    def test_update_preserves_other_keys(self, doc: JsonDocument) -> None:
        doc.save({"other": {"keep": True}})
        doc.update(lambda data: data.__setitem__("brain", {"version": "1.0.1"}))
        assert doc.read() == {"other": {"keep": True}, "brain": {"version": "1.0.1"}}

    def test_update_returns_mutate_result(self, doc: JsonDocument) -> None:
        assert doc.update(lambda data: "result") == "result"

    def test_update_replaces_unreadable_document(self, doc: JsonDocument) -> None:
        doc.path.parent.mkdir(parents=True)
        doc.path.write_text("{broken")
        doc.update(lambda data: data.setdefault("fresh", 1))
        assert doc.read() == {"fresh": 1}

    def test_failed_mutation_writes_nothing(self, doc: JsonDocument) -> None:
        doc.save({"a": 1})

        def explode(data: dict) -> None:
            data["a"] = 2
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            doc.update(explode)
        assert doc.read() == {"a": 1}

    def test_optimistic_check_accepts_matching_token(self, doc: JsonDocument) -> None:
        doc.save({"v": 1})
        doc.save({"v": 2}, token=lambda d: d.get("v"), expected=1)
        assert doc.read() == {"v": 2}

    def test_optimistic_check_rejects_moved_token(self, doc: JsonDocument) -> None:
        doc.save({"v": 5})
        with pytest.raises(StaleWriteError):
            doc.save({"v": 2}, token=lambda d: d.get("v"), expected=1)
        assert doc.read() == {"v": 5}

    def test_optimistic_check_sees_missing_document_as_empty(self, doc: JsonDocument) -> None:
        doc.save({"v": 1}, token=lambda d: d.get("v"), expected=None)
        assert doc.read() == {"v": 1}

    def test_delete(self, doc: JsonDocument) -> None:
        doc.save({"a": 1})
        assert doc.delete()
        assert not doc.exists()
        assert not doc.lock_path.exists()
        assert not doc.delete()
