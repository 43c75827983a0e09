"""Template documents submitted with change sets."""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Protocol

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class DocumentType(str, Enum):
    YAML = "YAML"
    JSON = "JSON"


class Document(BaseModel):
    uri: str
    body: str
    type: DocumentType = DocumentType.YAML
    version: int = 0


def detect_document_type(uri: str, body: str) -> DocumentType:
    if uri.lower().endswith(".json") or body.lstrip().startswith("{"):
        return DocumentType.JSON
    return DocumentType.YAML


class DocumentStore(Protocol):
    """Resolves a document uri to its current text."""

    def get(self, uri: str) -> Optional[Document]:
        """Return the open document for ``uri``, if any."""


class InMemoryDocumentStore(DocumentStore):
    """Tracks open documents by uri."""

    def __init__(self) -> None:
        self._documents: Dict[str, Document] = {}

    def open(self, uri: str, body: str, version: int = 0) -> Document:
        document = Document(
            uri=uri, body=body, type=detect_document_type(uri, body), version=version
        )
        self._documents[uri] = document
        return document

    def open_file(self, path: Path) -> Document:
        """Open a template from disk under its ``file://`` uri."""
        path = Path(path).expanduser().resolve()
        return self.open(path.as_uri(), path.read_text(encoding="utf-8"))

    def update(self, uri: str, body: str) -> Document:
        current = self._documents.get(uri)
        version = current.version + 1 if current else 0
        return self.open(uri, body, version)

    def close(self, uri: str) -> None:
        self._documents.pop(uri, None)

    def get(self, uri: str) -> Optional[Document]:
        return self._documents.get(uri)
