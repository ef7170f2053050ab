"""Errors raised by the route catalog, resolver and renderer."""

from __future__ import annotations


class RouteError(Exception):
    """Base class for menu errors."""


# ============ Configuration (startup-fatal) ============

class ConfigError(RouteError):
    """Routes document cannot be turned into a catalog."""


class MalformedConfigError(ConfigError):
    """Document is not valid JSON or an entry has the wrong shape."""

    def __init__(self, message: str, *, key: str | None = None):
        self.key = key
        if key is not None:
            message = f"route {key!r}: {message}"
        super().__init__(message)


class DanglingReferenceError(ConfigError):
    """A child or the home route points to a key missing from the document."""

    def __init__(self, missing: list[tuple[str | None, str]]):
        # (referencing key, missing key); referencing key is None for the home route.
        self.missing = list(missing)
        parts = []
        for parent, key in self.missing:
            if parent is None:
                parts.append(f"home route {key!r}")
            else:
                parts.append(f"{parent!r} -> {key!r}")
        super().__init__("unresolved route references: " + ", ".join(parts))


# ============ Resolving ============

class ResolveError(RouteError):
    """Raw input does not map to a route."""


class RouteNotFoundError(ResolveError):
    def __init__(self, raw: str, key: str):
        self.raw = raw
        self.key = key
        super().__init__(f"route {key!r} not found (input {raw!r})")


# ============ Rendering ============

class RenderError(RouteError):
    """Content for a route could not be rendered.

    Always a configuration defect: it is logged and never retried.
    """

    def __init__(self, message: str, *, route_key: str | None, document_key: str):
        self.route_key = route_key
        self.document_key = document_key
        super().__init__(message)


class ContentMissingError(RenderError):
    def __init__(self, *, route_key: str | None, document_key: str):
        super().__init__(
            f"document {document_key!r} not found",
            route_key=route_key,
            document_key=document_key,
        )


class ContentCorruptError(RenderError):
    def __init__(self, *, route_key: str | None, document_key: str, reason: str = ""):
        message = f"document {document_key!r} is not valid UTF-8"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, route_key=route_key, document_key=document_key)
