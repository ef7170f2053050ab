import asyncio

import pytest

from routes import (
    Button,
    CallbackAction,
    ContentCorruptError,
    ContentMissingError,
    FixedChunk,
    MappingContentStore,
    MenuRenderer,
    RenderContext,
    RouteCatalog,
    RouteResolver,
    UrlAction,
)
from routes.renderer import HOME_BUTTON_LABEL

from conftest import ROUTES


@pytest.fixture
def catalog():
    return RouteCatalog.load(ROUTES)


@pytest.fixture
def store():
    documents = {f"{key}.md": f"{key} text".encode() for key in ROUTES}
    documents["advent.md"] = "*advent*".encode()
    return MappingContentStore(documents)


@pytest.fixture
def renderer(catalog, store):
    return MenuRenderer(catalog, store)


def _callbacks(grid):
    return [button.action.route_key for row in grid for button in row]


async def test_branch_renders_children(renderer, catalog):
    rendered = await renderer.render(catalog["recycling"])
    assert rendered.text == "recycling text"
    # "other" has a long label and takes a row of its own.
    assert rendered.buttons == (
        (Button("Пластик", CallbackAction("plastic")),),
        (Button("🔋 Опасные и прочие отходы", CallbackAction("other")),),
    )


async def test_leaf_gets_home_button(renderer, catalog):
    rendered = await renderer.render(catalog["plastic"])
    assert rendered.buttons == ((Button(HOME_BUTTON_LABEL, CallbackAction("start")),),)


async def test_external_link_hidden_in_navigation(renderer, catalog):
    rendered = await renderer.render(catalog["volunteer"], RenderContext())
    assert _callbacks(rendered.buttons) == ["start"]


async def test_external_link_shown_when_allowed(renderer, catalog):
    rendered = await renderer.render(catalog["volunteer"], RenderContext(allow_external=True))
    assert rendered.buttons == (
        (Button("Заполнить анкету", UrlAction("https://example.org/form")),),
    )


async def test_allow_external_without_link_falls_back_to_home(renderer, catalog):
    rendered = await renderer.render(catalog["plastic"], RenderContext(allow_external=True))
    assert _callbacks(rendered.buttons) == ["start"]


async def test_missing_document(catalog):
    renderer = MenuRenderer(catalog, MappingContentStore({}))
    with pytest.raises(ContentMissingError) as excinfo:
        await renderer.render(catalog["plastic"])
    assert excinfo.value.route_key == "plastic"
    assert excinfo.value.document_key == "plastic.md"


async def test_corrupt_document(catalog):
    renderer = MenuRenderer(catalog, MappingContentStore({"plastic.md": b"\xff\xfe"}))
    with pytest.raises(ContentCorruptError) as excinfo:
        await renderer.render(catalog["plastic"])
    assert excinfo.value.document_key == "plastic.md"


async def test_render_document(renderer):
    assert await renderer.render_document("advent.md") == "*advent*"


async def test_render_document_missing(renderer):
    with pytest.raises(ContentMissingError) as excinfo:
        await renderer.render_document("nothing.md")
    assert excinfo.value.route_key is None


async def test_subscribe_button_swapped_for_subscriber(renderer, catalog):
    ctx = RenderContext(requesting_user=1, subscriptions=frozenset({"advent"}))
    rendered = await renderer.render(catalog["ecoadvent"], ctx)
    assert _callbacks(rendered.buttons) == ["unsubscribe_advent"]


async def test_subscribe_button_kept_without_subscription(renderer, catalog):
    ctx = RenderContext(requesting_user=1, subscriptions=frozenset())
    rendered = await renderer.render(catalog["ecoadvent"], ctx)
    assert _callbacks(rendered.buttons) == ["subscribe_advent"]


async def test_no_personalization_without_subscriptions(renderer, catalog):
    rendered = await renderer.render(catalog["ecoadvent"], RenderContext(requesting_user=1))
    assert _callbacks(rendered.buttons) == ["subscribe_advent"]


def test_personalize_keeps_key_without_counterpart(renderer):
    keys = ("subscribe_news", "unsubscribe_advent", "plastic")
    assert renderer.personalize(keys, frozenset({"news"})) == (
        "subscribe_news",
        "subscribe_advent",
        "plastic",
    )


async def test_custom_packing(catalog, store):
    renderer = MenuRenderer(catalog, store, packing=FixedChunk(3))
    rendered = await renderer.render(catalog.home)
    assert _callbacks(rendered.buttons) == ["recycling", "volunteer", "ecoadvent"]
    assert len(rendered.buttons) == 1


async def test_missing_document_leaves_other_routes_servable(catalog):
    documents = {f"{key}.md": f"{key} text".encode() for key in ROUTES if key != "plastic"}
    renderer = MenuRenderer(catalog, MappingContentStore(documents))

    results = await asyncio.gather(
        *(renderer.render(catalog["plastic"]) for _ in range(50)),
        *(renderer.render(catalog.home) for _ in range(50)),
        return_exceptions=True,
    )

    missing, served = results[:50], results[50:]
    assert all(isinstance(r, ContentMissingError) and r.route_key == "plastic" for r in missing)
    assert all(r.text == "start text" for r in served)
    assert (await renderer.render(catalog["recycling"])).text == "recycling text"


async def test_concurrent_renders_depend_only_on_input(renderer, catalog):
    resolver = RouteResolver(catalog)
    def ctx_for(user_id):
        subscriptions = frozenset({"advent"}) if user_id % 2 else frozenset()
        return RenderContext(requesting_user=user_id, subscriptions=subscriptions)

    requests = [
        (raw, ctx_for(user_id))
        for user_id in range(40)
        for raw in ("/start", "/recycling", "ecoadvent", "/plastic")
    ]

    async def handle(raw, ctx):
        await asyncio.sleep(0)
        return await renderer.render(resolver.lookup(raw), ctx)

    concurrent = await asyncio.gather(*(handle(raw, ctx) for raw, ctx in requests))
    sequential = [await renderer.render(resolver.lookup(raw), ctx) for raw, ctx in requests]

    assert concurrent == sequential
    advent_buttons = {
        ctx.requesting_user: _callbacks(result.buttons)
        for (raw, ctx), result in zip(requests, concurrent)
        if raw == "ecoadvent"
    }
    assert advent_buttons[1] == ["unsubscribe_advent"]
    assert advent_buttons[2] == ["subscribe_advent"]
