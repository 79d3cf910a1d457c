"""Persistent store collaborators for documents under edit."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Mapping, Protocol, runtime_checkable

from ..ai.orchestration.types import DocumentState

__all__ = [
    "DocumentStore",
    "DocumentNotFoundError",
    "InMemoryDocumentStore",
    "FileDocumentStore",
    "language_for_path",
]

LOGGER = logging.getLogger(__name__)

_EXTENSION_LANGUAGES: Mapping[str, str] = {
    ".py": "python",
    ".js": "javascript",
    ".mjs": "javascript",
    ".jsx": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".json": "json",
    ".java": "java",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".hpp": "cpp",
    ".cs": "csharp",
    ".go": "go",
    ".rs": "rust",
    ".rb": "ruby",
    ".php": "php",
    ".css": "css",
    ".html": "html",
    ".md": "markdown",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".toml": "toml",
    ".txt": "text",
}


def language_for_path(path: Path | str) -> str | None:
    """Return the language tag for *path* based on its extension."""
    return _EXTENSION_LANGUAGES.get(Path(path).suffix.lower())


class DocumentNotFoundError(KeyError):
    """Raised when a store has no document for the requested id."""

    def __init__(self, document_id: str) -> None:
        super().__init__(document_id)
        self.document_id = document_id

    def __str__(self) -> str:
        return f"Document '{self.document_id}' not found"


@runtime_checkable
class DocumentStore(Protocol):
    def load(self, document_id: str) -> DocumentState:
        ...

    def save(self, document: DocumentState) -> None:
        ...


class InMemoryDocumentStore:
    """Dictionary-backed store; saved states replace earlier ones."""

    def __init__(self, documents: Mapping[str, DocumentState] | None = None) -> None:
        self._documents: dict[str, DocumentState] = dict(documents or {})

    def add(
        self,
        document_id: str,
        content: str,
        *,
        title: str | None = None,
        language: str | None = None,
    ) -> DocumentState:
        state = DocumentState(
            title=title or document_id,
            content=content,
            language=language,
            document_id=document_id,
        )
        self._documents[document_id] = state
        return state

    def load(self, document_id: str) -> DocumentState:
        try:
            return self._documents[document_id]
        except KeyError:
            raise DocumentNotFoundError(document_id) from None

    def save(self, document: DocumentState) -> None:
        key = document.document_id or document.title
        self._documents[key] = document
        LOGGER.debug("Stored %s (version %s)", key, document.version)

    def __contains__(self, document_id: object) -> bool:
        return document_id in self._documents


class FileDocumentStore:
    """Store that reads and writes UTF-8 files; document ids are paths."""

    def __init__(self, root: Path | str | None = None, *, encoding: str = "utf-8") -> None:
        self._root = Path(root) if root else None
        self._encoding = encoding

    def resolve(self, document_id: str) -> Path:
        path = Path(document_id).expanduser()
        if self._root is not None and not path.is_absolute():
            path = self._root / path
        return path

    def load(self, document_id: str) -> DocumentState:
        path = self.resolve(document_id)
        try:
            content = path.read_text(encoding=self._encoding)
        except FileNotFoundError:
            raise DocumentNotFoundError(document_id) from None
        return DocumentState(
            title=path.name,
            content=content,
            language=language_for_path(path),
            document_id=document_id,
        )

    def save(self, document: DocumentState) -> None:
        if not document.document_id:
            raise ValueError("FileDocumentStore can only save documents that carry a document_id")
        path = self.resolve(document.document_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(path.name + ".tmp")
        tmp_path.write_text(document.content, encoding=self._encoding)
        tmp_path.replace(path)
        LOGGER.info("Saved %s (%d chars)", path, len(document.content))
