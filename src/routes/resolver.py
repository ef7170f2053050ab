"""Raw command / callback text -> route key."""

from __future__ import annotations

from typing import TYPE_CHECKING

from routes.errors import RouteNotFoundError
from routes.models import Route

if TYPE_CHECKING:
    from routes.catalog import RouteCatalog


def normalize_key(raw: str) -> str:
    """Canonical route key for message commands, callbacks and content files.

    Trims whitespace, strips one leading slash and maps any remaining slashes
    to hyphens. Idempotent: a canonical key is returned unchanged.
    """
    key = raw.strip()
    if key.startswith("/"):
        key = key[1:].strip()
    return key.replace("/", "-")


class RouteResolver:
    def __init__(self, catalog: RouteCatalog):
        self._catalog = catalog

    def resolve(self, raw: str) -> str:
        """Return the canonical key for `raw` or raise RouteNotFoundError."""
        key = normalize_key(raw)
        if key not in self._catalog:
            raise RouteNotFoundError(raw, key)
        return key

    def lookup(self, raw: str) -> Route:
        return self._catalog[self.resolve(raw)]
