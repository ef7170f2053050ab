"""Menu domain models."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ExternalLink:
    label: str
    url: str


@dataclass(frozen=True, slots=True)
class Branch:
    children: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class Leaf:
    external: ExternalLink | None = None


@dataclass(frozen=True, slots=True)
class Route:
    """One node of the menu graph.

    `key` is the catalog key and the callback payload of the route's button.
    `path` is carried through from the document and not used for lookup.
    """

    key: str
    label: str
    path: str
    node: Branch | Leaf

    @property
    def is_leaf(self) -> bool:
        return isinstance(self.node, Leaf)

    @property
    def children(self) -> tuple[str, ...]:
        if isinstance(self.node, Branch):
            return self.node.children
        return ()

    @property
    def external(self) -> ExternalLink | None:
        if isinstance(self.node, Leaf):
            return self.node.external
        return None


@dataclass(frozen=True, slots=True)
class CallbackAction:
    route_key: str


@dataclass(frozen=True, slots=True)
class UrlAction:
    url: str


@dataclass(frozen=True, slots=True)
class Button:
    label: str
    action: CallbackAction | UrlAction


ButtonGrid = tuple[tuple[Button, ...], ...]


@dataclass(frozen=True, slots=True)
class RenderedMenu:
    text: str
    buttons: ButtonGrid = ()


@dataclass(frozen=True, slots=True)
class RenderContext:
    """Per-call rendering policy.

    allow_external: leaves may show their outbound link (broadcasts) instead
        of the home button (interactive navigation).
    requesting_user: Telegram user the menu is rendered for, if any.
    subscriptions: topics that user is subscribed to; enables
        subscribe/unsubscribe button swapping when not None.
    """

    allow_external: bool = False
    requesting_user: int | None = None
    subscriptions: frozenset[str] | None = None
