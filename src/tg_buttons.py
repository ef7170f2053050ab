"""Telegram UI helpers.

Turns the renderer's button grid into aiogram markup. Kept free of menu
logic: whatever route key the layout engine put on a button goes to
Telegram as callback_data unchanged.
"""

from __future__ import annotations

from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup

from routes.models import Button, ButtonGrid, CallbackAction, UrlAction

# Characters escaped in MarkdownV2 announcements; `*`, `_` and brackets stay
# available for formatting in the documents.
MARKDOWN_V2_ESCAPED = ".-{}!"


def ikb(text: str, *, callback_data: str | None = None, url: str | None = None) -> InlineKeyboardButton:
    kwargs: dict[str, str] = {"text": str(text)}
    if callback_data is not None:
        kwargs["callback_data"] = str(callback_data)
    if url is not None:
        kwargs["url"] = str(url)
    return InlineKeyboardButton(**kwargs)


def to_inline_button(button: Button) -> InlineKeyboardButton:
    action = button.action
    if isinstance(action, CallbackAction):
        return ikb(button.label, callback_data=action.route_key)
    if isinstance(action, UrlAction):
        return ikb(button.label, url=action.url)
    raise TypeError(f"unsupported button action: {action!r}")


def build_markup(grid: ButtonGrid) -> InlineKeyboardMarkup | None:
    if not grid:
        return None
    return InlineKeyboardMarkup(
        inline_keyboard=[[to_inline_button(button) for button in row] for row in grid]
    )


def escape_markdown_v2(text: str) -> str:
    for ch in MARKDOWN_V2_ESCAPED:
        text = text.replace(ch, f"\\{ch}")
    return text
