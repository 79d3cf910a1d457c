"""Tests for the document store collaborators."""

from __future__ import annotations

from pathlib import Path

import pytest

from inkloop.ai.orchestration.types import DocumentState
from inkloop.services.document_store import (
    DocumentNotFoundError,
    DocumentStore,
    FileDocumentStore,
    InMemoryDocumentStore,
    language_for_path,
)


class TestInMemoryDocumentStore:
    def test_add_and_load(self) -> None:
        store = InMemoryDocumentStore()

        added = store.add("notes", "body", title="notes.md", language="markdown")

        assert store.load("notes") == added
        assert "notes" in store
        assert isinstance(store, DocumentStore)

    def test_save_replaces_state(self) -> None:
        store = InMemoryDocumentStore()
        state = store.add("a.py", "x = 1")

        store.save(state.with_content("x = 2"))

        assert store.load("a.py").content == "x = 2"
        assert store.load("a.py").version == 1

    def test_missing_document(self) -> None:
        with pytest.raises(DocumentNotFoundError) as excinfo:
            InMemoryDocumentStore().load("nope")

        assert str(excinfo.value) == "Document 'nope' not found"


class TestFileDocumentStore:
    def test_load_detects_language(self, tmp_path: Path) -> None:
        (tmp_path / "app.ts").write_text("let x = 1;\n", encoding="utf-8")

        state = FileDocumentStore(tmp_path).load("app.ts")

        assert state.title == "app.ts"
        assert state.content == "let x = 1;\n"
        assert state.language == "typescript"
        assert state.document_id == "app.ts"

    def test_save_writes_atomically(self, tmp_path: Path) -> None:
        store = FileDocumentStore(tmp_path)
        (tmp_path / "notes.md").write_text("old", encoding="utf-8")
        state = store.load("notes.md")

        store.save(state.with_content("new"))

        assert (tmp_path / "notes.md").read_text(encoding="utf-8") == "new"
        assert not (tmp_path / "notes.md.tmp").exists()

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(DocumentNotFoundError):
            FileDocumentStore(tmp_path).load("missing.txt")

    def test_save_requires_document_id(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError):
            FileDocumentStore(tmp_path).save(DocumentState(title="loose.txt", content="x"))

    def test_absolute_paths_ignore_root(self, tmp_path: Path) -> None:
        target = tmp_path / "abs.txt"
        target.write_text("abs", encoding="utf-8")

        state = FileDocumentStore(tmp_path / "elsewhere").load(str(target))

        assert state.content == "abs"


@pytest.mark.parametrize(
    ("path", "language"),
    [("a.PY", "python"), ("b.mjs", "javascript"), ("c.yml", "yaml"), ("Makefile", None)],
)
def test_language_for_path(path: str, language: str | None) -> None:
    assert language_for_path(path) == language
