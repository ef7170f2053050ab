import asyncio
import logging

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from aiogram.fsm.storage.memory import MemoryStorage
from aiogram.types import BotCommand

from config import CFG
from logging_setup import configure_logging

configure_logging("ecobot")

from database import init_db
from handlers import PUBLIC_COMMANDS, router
from routes import MenuService

logger = logging.getLogger(__name__)


async def main():
    """Application entry point."""
    await init_db()

    # A broken routes document or content directory stops the bot here.
    menu = MenuService(
        CFG.routes_path,
        CFG.contents_dir,
        packing=CFG.menu_packing,
        home_key=CFG.home_route,
    )
    logger.info("Menu ready: %s routes, home=%s", len(menu.catalog), menu.catalog.home_key)

    bot = Bot(
        token=CFG.token,
        default=DefaultBotProperties(parse_mode=ParseMode.HTML),
    )
    dp = Dispatcher(storage=MemoryStorage())
    dp["menu"] = menu
    dp.include_router(router)

    await bot.set_my_commands(
        [BotCommand(command=command, description=description) for command, description in PUBLIC_COMMANDS]
    )

    try:
        await dp.start_polling(bot)
    finally:
        await bot.session.close()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
