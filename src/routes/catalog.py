"""Route catalog: parsed and validated once, read-only afterwards."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator, Mapping
from pathlib import Path
from types import MappingProxyType
from typing import Any
from urllib.parse import urlsplit

from routes.errors import DanglingReferenceError, MalformedConfigError
from routes.models import Branch, ExternalLink, Leaf, Route
from routes.resolver import normalize_key

DEFAULT_HOME_KEY = "start"
# Telegram rejects callback_data longer than 64 bytes.
CALLBACK_DATA_MAX_BYTES = 64
ALLOWED_URL_SCHEMES = {"http", "https", "tg"}

logger = logging.getLogger(__name__)


def _check_key(key: Any) -> str:
    if not isinstance(key, str) or not key:
        raise MalformedConfigError(f"route key must be a non-empty string, got {key!r}")
    if any(ch.isspace() for ch in key) or "@" in key:
        raise MalformedConfigError("key must not contain whitespace or '@'", key=key)
    if normalize_key(key) != key:
        raise MalformedConfigError(
            f"key is not canonical (expected {normalize_key(key)!r})", key=key
        )
    if len(key.encode("utf-8")) > CALLBACK_DATA_MAX_BYTES:
        raise MalformedConfigError(
            f"key exceeds {CALLBACK_DATA_MAX_BYTES} bytes of callback data", key=key
        )
    return key


def _parse_external(key: str, raw: Any) -> ExternalLink:
    if (
        not isinstance(raw, (list, tuple))
        or len(raw) != 2
        or not all(isinstance(part, str) and part for part in raw)
    ):
        raise MalformedConfigError("external must be a [label, url] pair of strings", key=key)
    label, url = raw
    parts = urlsplit(url)
    if parts.scheme not in ALLOWED_URL_SCHEMES or not parts.netloc:
        raise MalformedConfigError(f"external url {url!r} is not an absolute link", key=key)
    return ExternalLink(label=label, url=url)


def _parse_route(key: str, entry: Any) -> Route:
    if not isinstance(entry, Mapping):
        raise MalformedConfigError("entry must be an object", key=key)

    label = entry.get("label")
    if not isinstance(label, str) or not label.strip():
        raise MalformedConfigError("label must be a non-empty string", key=key)

    path = entry.get("path", key)
    if not isinstance(path, str):
        raise MalformedConfigError("path must be a string", key=key)

    children = entry.get("children")
    if children is not None:
        if not isinstance(children, list) or not all(isinstance(c, str) for c in children):
            raise MalformedConfigError("children must be a list of route keys", key=key)

    external = entry.get("external")

    if children:
        if external is not None:
            raise MalformedConfigError("external link is only allowed on leaf routes", key=key)
        return Route(key=key, label=label, path=path, node=Branch(tuple(children)))

    link = _parse_external(key, external) if external is not None else None
    return Route(key=key, label=label, path=path, node=Leaf(link))


class RouteCatalog(Mapping[str, Route]):
    """Immutable key -> Route mapping.

    Build it with `load` / `from_file`; every reference is checked before the
    instance exists, so a catalog object is always complete.
    """

    __slots__ = ("_routes", "home_key")

    def __init__(self, routes: Mapping[str, Route], *, home_key: str = DEFAULT_HOME_KEY):
        self._routes = MappingProxyType(dict(routes))
        self.home_key = home_key

    def __getitem__(self, key: str) -> Route:
        return self._routes[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._routes)

    def __len__(self) -> int:
        return len(self._routes)

    def __repr__(self) -> str:
        return f"RouteCatalog({len(self._routes)} routes, home={self.home_key!r})"

    @property
    def home(self) -> Route:
        return self._routes[self.home_key]

    def children_of(self, route: Route) -> tuple[Route, ...]:
        return tuple(self._routes[key] for key in route.children)

    @classmethod
    def load(
        cls,
        document: str | bytes | Mapping[str, Any],
        *,
        home_key: str = DEFAULT_HOME_KEY,
    ) -> RouteCatalog:
        if isinstance(document, (str, bytes, bytearray)):
            try:
                data = json.loads(document)
            except (json.JSONDecodeError, UnicodeDecodeError) as exc:
                raise MalformedConfigError(f"invalid routes document: {exc}") from exc
        else:
            data = document

        if not isinstance(data, Mapping):
            raise MalformedConfigError("routes document must be an object of routes")

        routes: dict[str, Route] = {}
        for raw_key, entry in data.items():
            key = _check_key(raw_key)
            routes[key] = _parse_route(key, entry)

        missing: list[tuple[str | None, str]] = []
        if home_key not in routes:
            missing.append((None, home_key))
        for route in routes.values():
            for child in route.children:
                if child not in routes:
                    missing.append((route.key, child))
        if missing:
            raise DanglingReferenceError(missing)

        return cls(routes, home_key=home_key)

    @classmethod
    def from_file(cls, path: str | Path, *, home_key: str = DEFAULT_HOME_KEY) -> RouteCatalog:
        path = Path(path)
        try:
            raw = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise MalformedConfigError(f"cannot read routes document {path}: {exc}") from exc
        catalog = cls.load(raw, home_key=home_key)
        logger.info("Loaded %s routes from %s", len(catalog), path)
        return catalog
