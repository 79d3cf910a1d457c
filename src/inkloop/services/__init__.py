"""Service layer: settings persistence and document stores."""

from .document_store import (
    DocumentNotFoundError,
    DocumentStore,
    FileDocumentStore,
    InMemoryDocumentStore,
    language_for_path,
)
from .settings import Settings, SettingsStore, redact_secret

__all__ = [
    "DocumentNotFoundError",
    "DocumentStore",
    "FileDocumentStore",
    "InMemoryDocumentStore",
    "language_for_path",
    "Settings",
    "SettingsStore",
    "redact_secret",
]
