from routes import Button, CallbackAction, UrlAction
from tg_buttons import build_markup, escape_markdown_v2, ikb


def test_empty_grid_has_no_markup():
    assert build_markup(()) is None


def test_build_markup_keeps_rows():
    grid = (
        (Button("Пластик", CallbackAction("plastic")), Button("Бумага", CallbackAction("paper"))),
        (Button("Анкета", UrlAction("https://example.org/form")),),
    )
    markup = build_markup(grid)

    rows = markup.inline_keyboard
    assert [[b.text for b in row] for row in rows] == [["Пластик", "Бумага"], ["Анкета"]]
    assert rows[0][1].callback_data == "paper"
    assert rows[1][0].url == "https://example.org/form"
    assert rows[1][0].callback_data is None


def test_ikb():
    button = ikb("Home", callback_data="start")
    assert button.text == "Home"
    assert button.callback_data == "start"


def test_escape_markdown_v2():
    assert escape_markdown_v2("*День 1*. Сдай {всё}-сразу!") == "*День 1*\\. Сдай \\{всё\\}\\-сразу\\!"
