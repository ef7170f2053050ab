import pytest

from routes import (
    CallbackAction,
    FixedChunk,
    LengthAware,
    RouteCatalog,
    RouteResolver,
    layout,
    parse_packing_policy,
)


def _routes(*labels):
    document = {"start": {"label": "Home"}}
    document.update({f"r{i}": {"label": label} for i, label in enumerate(labels)})
    catalog = RouteCatalog.load(document)
    return [catalog[f"r{i}"] for i in range(len(labels))]


def _labels(grid):
    return [[button.label for button in row] for row in grid]


def test_fixed_chunk_rows():
    grid = layout(_routes(*"abcdefg"), FixedChunk(3))
    assert _labels(grid) == [["a", "b", "c"], ["d", "e", "f"], ["g"]]


def test_fixed_chunk_rejects_non_positive_size():
    with pytest.raises(ValueError):
        FixedChunk(0)


def test_length_aware_pairs_short_labels():
    grid = layout(_routes("a", "b", "c"), LengthAware())
    assert _labels(grid) == [["a", "b"], ["c"]]


def test_length_aware_long_label_gets_own_row():
    long_label = "🔋 Опасные и прочие отходы"
    grid = layout(_routes("a", long_label, "b", "c"), LengthAware())
    assert _labels(grid) == [["a"], [long_label], ["b", "c"]]


def test_length_aware_threshold_is_exclusive():
    exactly = "x" * 20
    grid = layout(_routes(exactly, "y"), LengthAware())
    assert _labels(grid) == [[exactly, "y"]]


@pytest.mark.parametrize("policy", [FixedChunk(1), FixedChunk(2), FixedChunk(4), LengthAware()])
def test_layout_keeps_every_child_in_order(policy):
    routes = _routes("one", "two", "a much longer label here", "three", "four")
    grid = layout(routes, policy)
    flat = [button for row in grid for button in row]
    assert [b.action for b in flat] == [CallbackAction(r.key) for r in routes]
    assert all(row for row in grid)


def test_layout_of_nothing():
    assert layout([], LengthAware()) == ()
    assert layout([], FixedChunk(3)) == ()


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, LengthAware()),
        ("", LengthAware()),
        ("length_aware", LengthAware()),
        ("fixed", FixedChunk(3)),
        ("FIXED:2", FixedChunk(2)),
    ],
)
def test_parse_packing_policy(value, expected):
    assert parse_packing_policy(value) == expected


@pytest.mark.parametrize("value", ["grid", "fixed:x", "fixed:0"])
def test_parse_packing_policy_invalid(value):
    with pytest.raises(ValueError):
        parse_packing_policy(value)


def test_fixed_chunk_two_on_five():
    grid = layout(_routes("a", "b", "c", "d", "e"), FixedChunk(2))
    assert [len(row) for row in grid] == [2, 2, 1]
    assert _labels(grid) == [["a", "b"], ["c", "d"], ["e"]]


def test_length_aware_mixed_labels():
    grid = layout(_routes("Paper", "Glass", "ALongLabelOverTwentyCharacters", "Metal"), LengthAware())
    assert _labels(grid) == [["Paper", "Glass"], ["ALongLabelOverTwentyCharacters"], ["Metal"]]


@pytest.mark.parametrize("policy", [FixedChunk(1), FixedChunk(2), FixedChunk(3), LengthAware()])
def test_every_button_resolves_to_its_child(policy):
    catalog = RouteCatalog.load(
        {
            "start": {
                "label": "Home",
                "children": ["recycling-paper", "glass", "subscribe_advent", "other"],
            },
            "recycling-paper": {"label": "Paper"},
            "glass": {"label": "Glass"},
            "subscribe_advent": {"label": "Подписаться на адвент-календарь"},
            "other": {"label": "Other"},
        }
    )
    resolver = RouteResolver(catalog)
    children = catalog.children_of(catalog.home)

    grid = layout(children, policy)

    keys = [resolver.resolve(button.action.route_key) for row in grid for button in row]
    assert keys == [child.key for child in children]
