"""Content store for route documents."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from types import MappingProxyType
from typing import Protocol

from routes.errors import MalformedConfigError

CONTENT_SUFFIX = ".md"

logger = logging.getLogger(__name__)


def document_key(route_key: str) -> str:
    """Document key of a route: `<key>.md`."""
    return f"{route_key}{CONTENT_SUFFIX}"


class ContentStore(Protocol):
    async def get(self, document_key: str) -> bytes | None:
        """Raw document bytes or None when the document does not exist."""


class MappingContentStore:
    """In-memory store of bundled documents."""

    def __init__(self, documents: Mapping[str, bytes]):
        self._documents = MappingProxyType(dict(documents))

    def __contains__(self, document_key: object) -> bool:
        return document_key in self._documents

    def __len__(self) -> int:
        return len(self._documents)

    def keys(self) -> frozenset[str]:
        return frozenset(self._documents)

    async def get(self, document_key: str) -> bytes | None:
        return self._documents.get(document_key)

    @classmethod
    def from_directory(cls, directory: str | Path) -> MappingContentStore:
        """Read every `*.md` file of `directory` once."""
        directory = Path(directory)
        documents = {}
        for path in sorted(directory.glob(f"*{CONTENT_SUFFIX}")):
            if not path.is_file():
                continue
            try:
                documents[path.name] = path.read_bytes()
            except OSError as exc:
                raise MalformedConfigError(f"cannot read content document {path}: {exc}") from exc
        logger.info("Loaded %s content documents from %s", len(documents), directory)
        return cls(documents)
