"""Menu renderer: route + context -> text and button grid."""

from __future__ import annotations

from routes.catalog import RouteCatalog
from routes.content import ContentStore, document_key
from routes.errors import ContentCorruptError, ContentMissingError
from routes.layout import LengthAware, PackingPolicy, layout
from routes.models import (
    Button,
    ButtonGrid,
    CallbackAction,
    RenderContext,
    RenderedMenu,
    Route,
    UrlAction,
)

HOME_BUTTON_LABEL = "На Главную"
SUBSCRIBE_PREFIX = "subscribe_"
UNSUBSCRIBE_PREFIX = "unsubscribe_"


class MenuRenderer:
    def __init__(
        self,
        catalog: RouteCatalog,
        content_store: ContentStore,
        *,
        packing: PackingPolicy | None = None,
        home_label: str = HOME_BUTTON_LABEL,
    ):
        self.catalog = catalog
        self.content_store = content_store
        self.packing = packing if packing is not None else LengthAware()
        self.home_label = home_label

    async def render(self, route: Route, ctx: RenderContext | None = None) -> RenderedMenu:
        """Render `route` for `ctx`.

        Raises ContentMissingError / ContentCorruptError when the route's
        document is absent or not UTF-8.
        """
        ctx = ctx or RenderContext()
        text = await self._load_text(document_key(route.key), route_key=route.key)
        return RenderedMenu(text=text, buttons=self.build_buttons(route, ctx))

    async def render_document(self, key: str) -> str:
        """Text of a standalone document such as `advent.md`."""
        return await self._load_text(key, route_key=None)

    def build_buttons(self, route: Route, ctx: RenderContext) -> ButtonGrid:
        if route.children:
            keys = route.children
            if ctx.subscriptions is not None:
                keys = self.personalize(keys, ctx.subscriptions)
            children = [self.catalog[key] for key in keys]
            return layout(children, self.packing)

        external = route.external
        if ctx.allow_external and external is not None:
            return ((Button(external.label, UrlAction(external.url)),),)
        return ((Button(self.home_label, CallbackAction(self.catalog.home_key)),),)

    def personalize(self, keys: tuple[str, ...], subscriptions: frozenset[str]) -> tuple[str, ...]:
        """Swap subscribe_<topic> / unsubscribe_<topic> according to the user's topics."""
        result = []
        for key in keys:
            swapped = key
            if key.startswith(SUBSCRIBE_PREFIX):
                topic = key[len(SUBSCRIBE_PREFIX):]
                if topic in subscriptions:
                    swapped = f"{UNSUBSCRIBE_PREFIX}{topic}"
            elif key.startswith(UNSUBSCRIBE_PREFIX):
                topic = key[len(UNSUBSCRIBE_PREFIX):]
                if topic not in subscriptions:
                    swapped = f"{SUBSCRIBE_PREFIX}{topic}"
            result.append(swapped if swapped in self.catalog else key)
        return tuple(result)

    async def _load_text(self, doc_key: str, *, route_key: str | None) -> str:
        raw = await self.content_store.get(doc_key)
        if raw is None:
            raise ContentMissingError(route_key=route_key, document_key=doc_key)
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ContentCorruptError(
                route_key=route_key, document_key=doc_key, reason=str(exc)
            ) from exc
