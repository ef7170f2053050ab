"""Published menu state: catalog, resolver and renderer swapped as one unit."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from routes.catalog import DEFAULT_HOME_KEY, RouteCatalog
from routes.content import MappingContentStore, document_key
from routes.errors import MalformedConfigError
from routes.layout import PackingPolicy
from routes.models import RenderContext, RenderedMenu
from routes.renderer import MenuRenderer
from routes.resolver import RouteResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class MenuSnapshot:
    catalog: RouteCatalog
    resolver: RouteResolver
    renderer: MenuRenderer


class MenuService:
    """Holds one fully built MenuSnapshot.

    Each request reads `snapshot` once; `reload` builds a new snapshot and
    replaces the reference only after it validated.
    """

    def __init__(
        self,
        routes_path: str | Path,
        contents_dir: str | Path,
        *,
        packing: PackingPolicy | None = None,
        home_key: str = DEFAULT_HOME_KEY,
    ):
        self.routes_path = Path(routes_path)
        self.contents_dir = Path(contents_dir)
        self.packing = packing
        self.home_key = home_key
        self._snapshot = self._build()

    @property
    def snapshot(self) -> MenuSnapshot:
        return self._snapshot

    @property
    def catalog(self) -> RouteCatalog:
        return self._snapshot.catalog

    def _build(self) -> MenuSnapshot:
        if not self.contents_dir.is_dir():
            raise MalformedConfigError(f"contents directory {self.contents_dir} does not exist")
        catalog = RouteCatalog.from_file(self.routes_path, home_key=self.home_key)
        store = MappingContentStore.from_directory(self.contents_dir)
        without_content = sorted(key for key in catalog if document_key(key) not in store)
        if without_content:
            logger.warning("Routes without content documents: %s", ", ".join(without_content))
        renderer = MenuRenderer(catalog, store, packing=self.packing)
        return MenuSnapshot(catalog=catalog, resolver=RouteResolver(catalog), renderer=renderer)

    def reload(self) -> MenuSnapshot:
        """Rebuild from disk; on ConfigError the current snapshot stays published."""
        snapshot = self._build()
        self._snapshot = snapshot
        logger.info("Menu reloaded: %s routes", len(snapshot.catalog))
        return snapshot

    def resolve(self, raw: str) -> str:
        return self._snapshot.resolver.resolve(raw)

    async def render_key(self, raw: str, ctx: RenderContext | None = None) -> RenderedMenu:
        snapshot = self._snapshot
        route = snapshot.resolver.lookup(raw)
        return await snapshot.renderer.render(route, ctx)

    async def render_document(self, key: str) -> str:
        return await self._snapshot.renderer.render_document(key)
