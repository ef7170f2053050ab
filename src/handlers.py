import asyncio
import html
import logging
import sqlite3
from typing import Any, Awaitable, Callable, Dict

from aiogram import BaseMiddleware, Bot, F, Router
from aiogram.enums import ParseMode
from aiogram.exceptions import TelegramAPIError
from aiogram.filters import Command, CommandObject
from aiogram.types import CallbackQuery, LinkPreviewOptions, Message, TelegramObject

from config import CFG, is_admin
from database import (
    blacklist_user,
    get_active_users,
    get_user_subscriptions,
    get_users_by_subscription,
    list_bin_locations,
    store_user,
    subscribe_user,
    unsubscribe_all,
    unsubscribe_user,
)
from locations import find_nearby, format_nearby_message
from routes import (
    ConfigError,
    MenuService,
    RenderContext,
    RenderedMenu,
    RenderError,
    RouteNotFoundError,
    normalize_key,
)
from routes.renderer import SUBSCRIBE_PREFIX, UNSUBSCRIBE_PREFIX
from services import broadcast_messages
from tg_buttons import build_markup, escape_markdown_v2

router = Router()
logger = logging.getLogger(__name__)

NO_PREVIEW = LinkPreviewOptions(is_disabled=True)
ADVENT_DOCUMENT = "advent.md"

# Shown by /help and registered as the bot's command menu.
PUBLIC_COMMANDS: list[tuple[str, str]] = [
    ("start", "Главное меню"),
    ("recycling", "Что можно сдать на переработку"),
    ("plastic", "Пластик"),
    ("paper", "Бумага и картон"),
    ("metal", "Металл"),
    ("glass", "Стекло"),
    ("organic", "Органика"),
    ("other", "Опасные и прочие отходы"),
    ("find", "Где ближайший контейнер"),
    ("giveaway", "Отдам даром"),
    ("faq", "Частые вопросы"),
    ("about", "О проекте"),
    ("stop", "Отписаться от всех рассылок"),
    ("help", "Список команд"),
]

HOME_ALIASES = {"бот", "Бот"}
STOP_ALIASES = {"стоп", "Стоп", "СТОП"}

RENDER_FAILURE_TEXT = "Не удалось загрузить раздел. Попробуйте позже или напишите «Бот»."
SEND_FAILURE_TEXT = "Ошибка при отправке сообщения: {error}"


def unknown_command_text(text: str) -> str:
    return (
        f"Неизвестная команда: {html.escape(text)}. "
        'Попробуйте начать сначала написав "Бот"'
    )


def help_text() -> str:
    lines = ["Поддерживаются команды:"]
    lines.extend(f"/{command} - {description}" for command, description in PUBLIC_COMMANDS)
    lines.append("\nОтправьте геопозицию, чтобы найти ближайшие контейнеры.")
    return "\n".join(lines)


def command_route(text: str) -> str:
    """`/paper@EcoBot args` -> `/paper`."""
    token = text.split(maxsplit=1)[0] if text.strip() else ""
    return token.split("@", 1)[0]


# ============ Middlewares ============

class UserRegistrationMiddleware(BaseMiddleware):
    """Store every sender so broadcasts can reach them."""

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        user = getattr(event, "from_user", None)
        if user is not None:
            try:
                if await store_user(user.id):
                    logger.info("New user registered from %s: %s", type(event).__name__, user.id)
            except sqlite3.Error:
                logger.exception("Failed to store user %s", user.id)
        return await handler(event, data)


class CallbackAnswerMiddleware(BaseMiddleware):
    """Answer the callback first so the client drops its loading state."""

    async def __call__(
        self,
        handler: Callable[[CallbackQuery, Dict[str, Any]], Awaitable[Any]],
        event: CallbackQuery,
        data: Dict[str, Any],
    ) -> Any:
        if isinstance(event, CallbackQuery):
            try:
                await event.answer()
            except TelegramAPIError as exc:
                logger.warning("Failed to answer callback %s: %s", event.id, exc)
        return await handler(event, data)


router.message.outer_middleware(UserRegistrationMiddleware())
router.callback_query.outer_middleware(UserRegistrationMiddleware())
router.callback_query.middleware(CallbackAnswerMiddleware())


# ============ Sending ============

async def send_menu(bot: Bot, chat_id: int, menu: RenderedMenu) -> None:
    await bot.send_message(
        chat_id,
        menu.text,
        reply_markup=build_markup(menu.buttons),
        link_preview_options=NO_PREVIEW,
    )


async def reply_route(
    bot: Bot,
    chat_id: int,
    menu: MenuService,
    raw: str,
    ctx: RenderContext | None = None,
) -> bool:
    """Render `raw` and send it; any failure gets a short reply instead."""
    try:
        rendered = await menu.render_key(raw, ctx)
    except RouteNotFoundError as exc:
        logger.info("Unknown route %r from chat %s", exc.key, chat_id)
        await bot.send_message(chat_id, unknown_command_text(raw))
        return False
    except RenderError as exc:
        logger.error("Failed to render route %s: %s", exc.route_key, exc)
        await bot.send_message(chat_id, RENDER_FAILURE_TEXT)
        return False
    try:
        await send_menu(bot, chat_id, rendered)
    except TelegramAPIError as exc:
        logger.error("Failed to send route %s to chat %s: %s", raw, chat_id, exc)
        await _notify_send_failure(bot, chat_id, exc)
        return False
    return True


async def _notify_send_failure(bot: Bot, chat_id: int, error: Exception) -> None:
    try:
        await bot.send_message(chat_id, SEND_FAILURE_TEXT.format(error=html.escape(str(error))))
    except TelegramAPIError:
        logger.exception("Failed to report send error to chat %s", chat_id)


async def _render_for_broadcast(message: Message, menu: MenuService, raw: str) -> RenderedMenu | None:
    try:
        return await menu.render_key(raw, RenderContext(allow_external=True))
    except RouteNotFoundError:
        await message.answer(f"Раздел «{html.escape(raw)}» не найден.")
    except RenderError as exc:
        logger.error("Failed to render broadcast route %s: %s", exc.route_key, exc)
        await message.answer(f"Ошибка при загрузке раздела «{html.escape(raw)}».")
    return None


async def _load_advent_caption(message: Message, menu: MenuService) -> str | None:
    try:
        return escape_markdown_v2(await menu.render_document(ADVENT_DOCUMENT))
    except RenderError as exc:
        logger.error("Failed to load %s: %s", ADVENT_DOCUMENT, exc)
        await message.answer(f"Ошибка при загрузке файла {ADVENT_DOCUMENT}")
    return None


async def _send_advent(bot: Bot, chat_id: int, caption: str) -> None:
    await bot.send_photo(
        chat_id,
        CFG.advent_photo_url,
        caption=caption,
        parse_mode=ParseMode.MARKDOWN_V2,
    )


def _sender_id(message: Message) -> int | None:
    return message.from_user.id if message.from_user else None


# ============ Admin commands ============

@router.message(Command("broadcast"))
async def cmd_broadcast(message: Message, command: CommandObject, bot: Bot, menu: MenuService):
    """/broadcast <route>: send a route page, external links included, to every active user."""
    if not is_admin(_sender_id(message)):
        await message.answer(unknown_command_text(message.text or ""))
        return

    raw = (command.args or "").strip()
    if not raw:
        await message.answer("Формат: <code>/broadcast раздел</code>")
        return

    rendered = await _render_for_broadcast(message, menu, raw)
    if rendered is None:
        return
    markup = build_markup(rendered.buttons)

    # Pages with subscribe/unsubscribe buttons get them per recipient.
    snapshot = menu.snapshot
    route = snapshot.catalog.get(normalize_key(raw))
    personalized = route is not None and any(
        key.startswith((SUBSCRIBE_PREFIX, UNSUBSCRIBE_PREFIX)) for key in route.children
    )

    users = await get_active_users()
    logger.info("Broadcasting %s to %s active users", raw, len(users))

    async def markup_for(chat_id: int):
        try:
            subscriptions = frozenset(await get_user_subscriptions(chat_id))
        except sqlite3.Error:
            logger.exception("Failed to load subscriptions of user %s", chat_id)
            return markup
        ctx = RenderContext(allow_external=True, requesting_user=chat_id, subscriptions=subscriptions)
        return build_markup(snapshot.renderer.build_buttons(route, ctx))

    async def send_one(chat_id: int) -> None:
        reply_markup = await markup_for(chat_id) if personalized else markup
        await bot.send_message(
            chat_id, rendered.text, reply_markup=reply_markup, link_preview_options=NO_PREVIEW
        )

    report = await broadcast_messages(users, send_one)

    blacklisted = 0
    for chat_id in report.failed:
        try:
            if await blacklist_user(chat_id):
                blacklisted += 1
        except sqlite3.Error:
            logger.exception("Failed to blacklist user %s", chat_id)

    await message.answer(
        "Отправка завершена.\n"
        f"Успешно: {len(report.sent)}\n"
        f"Ошибок: {len(report.failed)}\n"
        f"Заблокировано: {blacklisted}"
    )


@router.message(Command("testmessage"))
async def cmd_test_message(message: Message, command: CommandObject, bot: Bot, menu: MenuService):
    """/testmessage <route>: preview a broadcast on the test user."""
    if not is_admin(_sender_id(message)):
        await message.answer(unknown_command_text(message.text or ""))
        return
    if CFG.test_user_id is None:
        await message.answer("TEST_USER_ID не задан.")
        return

    raw = (command.args or "").strip()
    if not raw:
        await message.answer("Формат: <code>/testmessage раздел</code>")
        return

    rendered = await _render_for_broadcast(message, menu, raw)
    if rendered is None:
        return
    try:
        await send_menu(bot, CFG.test_user_id, rendered)
    except TelegramAPIError as exc:
        logger.error("Failed to send test message to user %s: %s", CFG.test_user_id, exc)
        await message.answer(SEND_FAILURE_TEXT.format(error=html.escape(str(exc))))
        return
    logger.info("Test message sent to user: %s", CFG.test_user_id)
    await message.answer(f"Тестовое сообщение отправлено пользователю {CFG.test_user_id}")


@router.message(Command("advent"))
async def cmd_advent(message: Message, bot: Bot, menu: MenuService):
    """Send today's advent photo to every subscriber of the advent topic."""
    if not is_admin(_sender_id(message)):
        await message.answer(unknown_command_text(message.text or ""))
        return

    caption = await _load_advent_caption(message, menu)
    if caption is None:
        return

    try:
        users = await get_users_by_subscription(CFG.advent_topic)
    except sqlite3.Error:
        logger.exception("Failed to get users by subscription")
        await message.answer("Ошибка при получении подписчиков")
        return

    logger.info("Sending %s to %s users", ADVENT_DOCUMENT, len(users))
    await message.answer(f"Отправка сообщения {len(users)} подписчикам...")

    async def send_one(chat_id: int) -> None:
        await _send_advent(bot, chat_id, caption)

    report = await broadcast_messages(users, send_one)
    await message.answer(
        f"Отправка завершена.\nУспешно: {len(report.sent)}\nОшибок: {len(report.failed)}"
    )


@router.message(Command("adventtest"))
async def cmd_advent_test(message: Message, bot: Bot, menu: MenuService):
    if not is_admin(_sender_id(message)):
        await message.answer(unknown_command_text(message.text or ""))
        return
    if CFG.test_user_id is None:
        await message.answer("TEST_USER_ID не задан.")
        return

    caption = await _load_advent_caption(message, menu)
    if caption is None:
        return

    logger.info("Sending test %s to user %s", ADVENT_DOCUMENT, CFG.test_user_id)
    try:
        await _send_advent(bot, CFG.test_user_id, caption)
    except TelegramAPIError as exc:
        logger.error("Failed to send test advent message: %s", exc)
        await message.answer(SEND_FAILURE_TEXT.format(error=html.escape(str(exc))))
        return
    await message.answer(f"Тестовое сообщение отправлено пользователю {CFG.test_user_id}")


@router.message(Command("reload"))
async def cmd_reload(message: Message, menu: MenuService):
    """Re-read routes and content; the old menu stays live if the new one is broken."""
    if not is_admin(_sender_id(message)):
        await message.answer(unknown_command_text(message.text or ""))
        return
    try:
        snapshot = await asyncio.to_thread(menu.reload)
    except ConfigError as exc:
        logger.error("Menu reload failed: %s", exc)
        await message.answer(f"Ошибка конфигурации меню:\n<code>{html.escape(str(exc))}</code>")
        return
    await message.answer(f"Меню обновлено: {len(snapshot.catalog)} разделов.")


# ============ User commands ============

@router.message(Command("help"))
async def cmd_help(message: Message):
    await message.answer(help_text())


async def handle_stop(message: Message, bot: Bot, menu: MenuService) -> None:
    user_id = _sender_id(message)
    if user_id is None:
        return
    try:
        removed = await unsubscribe_all(user_id)
    except sqlite3.Error:
        logger.exception("Error unsubscribing user %s from all", user_id)
        await message.answer("Произошла ошибка при отписке.")
        return
    if not removed:
        await message.answer("Вы не подписаны ни на одну рассылку.")
        return
    await reply_route(bot, message.chat.id, menu, f"{UNSUBSCRIBE_PREFIX}{CFG.advent_topic}")


@router.message(Command("stop"))
async def cmd_stop(message: Message, bot: Bot, menu: MenuService):
    await handle_stop(message, bot, menu)


@router.message(F.location)
async def handle_location(message: Message):
    latitude = message.location.latitude
    longitude = message.location.longitude
    logger.info("Location received: %s %s", latitude, longitude)
    bins = await list_bin_locations()
    nearby = find_nearby(bins, latitude, longitude, radius_km=CFG.bin_search_radius_km)
    text = format_nearby_message(
        nearby,
        latitude,
        longitude,
        main_point=(CFG.main_point_lat, CFG.main_point_lon),
    )
    await message.answer(text, link_preview_options=NO_PREVIEW)


@router.message(F.text.in_(HOME_ALIASES))
async def text_home(message: Message, bot: Bot, menu: MenuService):
    await reply_route(bot, message.chat.id, menu, menu.catalog.home_key)


@router.message(F.text.in_(STOP_ALIASES))
async def text_stop(message: Message, bot: Bot, menu: MenuService):
    await handle_stop(message, bot, menu)


@router.message(F.text.startswith("/"))
async def cmd_content(message: Message, bot: Bot, menu: MenuService):
    """Any other command is a route key: /paper, /faq, /start..."""
    await reply_route(bot, message.chat.id, menu, command_route(message.text))


@router.message(F.text)
async def text_unknown(message: Message):
    logger.info("Unknown text from chat %s", message.chat.id)
    await message.answer(unknown_command_text(message.text))


# ============ Callbacks ============

async def handle_subscription(
    bot: Bot,
    user_id: int,
    key: str,
    menu: MenuService,
    *,
    subscribe: bool,
) -> None:
    prefix = SUBSCRIBE_PREFIX if subscribe else UNSUBSCRIBE_PREFIX
    topic = key[len(prefix):]
    if not topic or key not in menu.catalog:
        logger.info("Unknown subscription callback %r from %s", key, user_id)
        await bot.send_message(user_id, unknown_command_text(key))
        return

    action = subscribe_user if subscribe else unsubscribe_user
    try:
        changed = await action(user_id, topic)
    except sqlite3.Error:
        logger.exception("Error updating subscription %s for user %s", key, user_id)
        error_text = "Произошла ошибка при подписке." if subscribe else "Произошла ошибка при отписке."
        await bot.send_message(user_id, error_text)
        return

    if not changed:
        already = "Вы уже подписаны на эту рассылку." if subscribe else "Вы не подписаны на эту рассылку."
        await bot.send_message(user_id, already)
        return
    await reply_route(bot, user_id, menu, key, RenderContext(requesting_user=user_id))


@router.callback_query(F.data)
async def cb_route(callback: CallbackQuery, bot: Bot, menu: MenuService):
    user_id = callback.from_user.id
    key = normalize_key(callback.data)
    logger.info("callback: %s", key)

    try:
        if key.startswith(SUBSCRIBE_PREFIX):
            await handle_subscription(bot, user_id, key, menu, subscribe=True)
            return
        if key.startswith(UNSUBSCRIBE_PREFIX):
            await handle_subscription(bot, user_id, key, menu, subscribe=False)
            return

        try:
            subscriptions = frozenset(await get_user_subscriptions(user_id))
        except sqlite3.Error:
            logger.exception("Failed to load subscriptions of user %s", user_id)
            subscriptions = None
        ctx = RenderContext(requesting_user=user_id, subscriptions=subscriptions)
        await reply_route(bot, user_id, menu, key, ctx)
    except TelegramAPIError as exc:
        logger.error("Error sending message: %s", exc)
        await _notify_send_failure(bot, user_id, exc)
