#!/usr/bin/env python3
"""
Smoke test: bundled menu routes and content documents.

Asserts:
- routes.json loads into a catalog (no malformed entries, no dangling children)
- every route has a `<key>.md` document that decodes as UTF-8
- every callback button of every rendered menu resolves to a route
- leaves with an external link expose it only when external links are allowed

Run:
  python3 scripts/smoke_routes_catalog.py
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = REPO_ROOT / "src"
if not (SRC_DIR / "routes" / "data" / "routes.json").exists():
    raise RuntimeError(f"Cannot locate bundled routes under {SRC_DIR}.")
sys.path.insert(0, str(SRC_DIR))

from routes import (  # noqa: E402
    CallbackAction,
    MenuService,
    RenderContext,
    UrlAction,
)

ROUTES_PATH = SRC_DIR / "routes" / "data" / "routes.json"
CONTENTS_DIR = SRC_DIR / "routes" / "data" / "contents"


async def _check() -> None:
    menu = MenuService(ROUTES_PATH, CONTENTS_DIR)
    catalog = menu.catalog
    assert catalog.home_key in catalog, "home route missing"

    for key, route in catalog.items():
        rendered = await menu.render_key(key)
        assert rendered.text.strip(), f"{key}: empty document"
        for row in rendered.buttons:
            assert row, f"{key}: empty button row"
            for button in row:
                action = button.action
                assert isinstance(action, CallbackAction), f"{key}: url button in navigation"
                assert menu.resolve(action.route_key) == action.route_key, (
                    f"{key}: button {button.label!r} -> {action.route_key!r} does not resolve"
                )

        if route.external is not None:
            broadcast = await menu.render_key(key, RenderContext(allow_external=True))
            actions = [button.action for row in broadcast.buttons for button in row]
            assert actions == [UrlAction(route.external.url)], f"{key}: external link not shown"

    print(f"OK: {len(catalog)} routes, home={catalog.home_key}")


def main() -> None:
    asyncio.run(_check())


if __name__ == "__main__":
    main()
