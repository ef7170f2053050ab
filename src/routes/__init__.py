"""Menu route graph: catalog, resolver, layout and renderer."""

from routes.catalog import DEFAULT_HOME_KEY, RouteCatalog
from routes.content import ContentStore, MappingContentStore, document_key
from routes.errors import (
    ConfigError,
    ContentCorruptError,
    ContentMissingError,
    DanglingReferenceError,
    MalformedConfigError,
    RenderError,
    ResolveError,
    RouteError,
    RouteNotFoundError,
)
from routes.layout import FixedChunk, LengthAware, PackingPolicy, layout, parse_packing_policy
from routes.models import (
    Branch,
    Button,
    CallbackAction,
    ExternalLink,
    Leaf,
    RenderContext,
    RenderedMenu,
    Route,
    UrlAction,
)
from routes.renderer import MenuRenderer
from routes.resolver import RouteResolver, normalize_key
from routes.service import MenuService, MenuSnapshot

__all__ = [
    "DEFAULT_HOME_KEY",
    "Branch",
    "Button",
    "CallbackAction",
    "ConfigError",
    "ContentCorruptError",
    "ContentMissingError",
    "ContentStore",
    "DanglingReferenceError",
    "ExternalLink",
    "FixedChunk",
    "Leaf",
    "LengthAware",
    "MalformedConfigError",
    "MappingContentStore",
    "MenuRenderer",
    "MenuService",
    "MenuSnapshot",
    "PackingPolicy",
    "RenderContext",
    "RenderError",
    "RenderedMenu",
    "ResolveError",
    "Route",
    "RouteCatalog",
    "RouteError",
    "RouteNotFoundError",
    "RouteResolver",
    "UrlAction",
    "document_key",
    "layout",
    "normalize_key",
    "parse_packing_policy",
]
