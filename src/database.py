import asyncio
import logging
import sqlite3
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime

import aiosqlite

from config import DB_PATH

SQLITE_BUSY_TIMEOUT_MS = 5000
# Bin points that the location search never offers.
EXCLUDED_ADDRESS_WORD = "Советск"
EXCLUDED_PRESET = "islands#darkOrangeIcon"

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class BinLocation:
    id: int
    latitude: float
    longitude: float
    address: str
    preset: str


async def apply_sqlite_pragmas(db: aiosqlite.Connection) -> None:
    """SQLite settings for concurrent access from the bot and the sync tool."""
    await db.execute("PRAGMA journal_mode=WAL;")
    await db.execute("PRAGMA synchronous=NORMAL;")
    await db.execute(f"PRAGMA busy_timeout={SQLITE_BUSY_TIMEOUT_MS};")


@asynccontextmanager
async def open_db() -> AsyncIterator[aiosqlite.Connection]:
    async with aiosqlite.connect(DB_PATH) as db:
        await apply_sqlite_pragmas(db)
        yield db


def _is_sqlite_locked_error(exc: BaseException) -> bool:
    if not isinstance(exc, (sqlite3.OperationalError, aiosqlite.OperationalError)):
        return False
    msg = str(exc).lower()
    return "database is locked" in msg or "database table is locked" in msg


async def _with_sqlite_retry(fn, *, retries: int = 3, base_delay: float = 0.05):
    attempt = 0
    while True:
        try:
            return await fn()
        except Exception as exc:
            if not _is_sqlite_locked_error(exc) or attempt >= retries:
                raise
            delay = base_delay * (2**attempt)
            logger.warning("SQLite locked; retry %s/%s in %.2fs", attempt + 1, retries, delay)
            await asyncio.sleep(delay)
            attempt += 1


async def init_db():
    """Create tables."""
    async with open_db() as db:
        await db.execute(
            """CREATE TABLE IF NOT EXISTS users (
                user_id INTEGER PRIMARY KEY,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                blacklisted INTEGER NOT NULL DEFAULT 0
            )"""
        )
        await db.execute(
            """CREATE TABLE IF NOT EXISTS subscriptions (
                user_id INTEGER NOT NULL,
                topic TEXT NOT NULL,
                created_at TEXT NOT NULL,
                PRIMARY KEY (user_id, topic)
            )"""
        )
        await db.execute(
            """CREATE TABLE IF NOT EXISTS bin_locations (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                latitude REAL NOT NULL,
                longitude REAL NOT NULL,
                address TEXT NOT NULL,
                preset TEXT NOT NULL
            )"""
        )
        await db.commit()


# ============ Users ============

async def store_user(user_id: int) -> bool:
    """Register a user; returns True only when the user is new."""
    async def _op() -> bool:
        now = datetime.now().isoformat()
        async with open_db() as db:
            cur = await db.execute(
                "INSERT OR IGNORE INTO users(user_id, created_at, updated_at) VALUES(?, ?, ?)",
                (user_id, now, now),
            )
            await db.commit()
            return cur.rowcount > 0

    created = await _with_sqlite_retry(_op)
    if created:
        logger.info("User %s created", user_id)
    return created


async def get_active_users() -> list[int]:
    """Users that can still receive broadcasts."""
    async with open_db() as db:
        async with db.execute(
            "SELECT user_id FROM users WHERE blacklisted=0 ORDER BY created_at"
        ) as cur:
            rows = await cur.fetchall()
            return [r[0] for r in rows]


async def blacklist_user(user_id: int) -> bool:
    """Mark user as unreachable; False when unknown or already blacklisted."""
    async def _op() -> bool:
        async with open_db() as db:
            cur = await db.execute(
                "UPDATE users SET blacklisted=1, updated_at=? WHERE user_id=? AND blacklisted=0",
                (datetime.now().isoformat(), user_id),
            )
            await db.commit()
            return cur.rowcount > 0

    changed = await _with_sqlite_retry(_op)
    if changed:
        logger.info("User %s blacklisted", user_id)
    return changed


# ============ Subscriptions ============

async def get_user_subscriptions(user_id: int) -> list[str]:
    async with open_db() as db:
        async with db.execute(
            "SELECT topic FROM subscriptions WHERE user_id=? ORDER BY created_at, topic",
            (user_id,),
        ) as cur:
            rows = await cur.fetchall()
            return [r[0] for r in rows]


async def subscribe_user(user_id: int, topic: str) -> bool:
    """Subscribe to a topic; False when already subscribed."""
    async def _op() -> bool:
        now = datetime.now().isoformat()
        async with open_db() as db:
            cur = await db.execute(
                "INSERT OR IGNORE INTO subscriptions(user_id, topic, created_at) VALUES(?, ?, ?)",
                (user_id, topic, now),
            )
            if cur.rowcount > 0:
                await db.execute(
                    "UPDATE users SET updated_at=? WHERE user_id=?", (now, user_id)
                )
            await db.commit()
            return cur.rowcount > 0

    subscribed = await _with_sqlite_retry(_op)
    logger.info("User %s subscribe to %s: %s", user_id, topic, "ok" if subscribed else "already")
    return subscribed


async def unsubscribe_user(user_id: int, topic: str) -> bool:
    """Unsubscribe from a topic; False when the user was not subscribed."""
    async def _op() -> bool:
        async with open_db() as db:
            cur = await db.execute(
                "DELETE FROM subscriptions WHERE user_id=? AND topic=?", (user_id, topic)
            )
            await db.commit()
            return cur.rowcount > 0

    removed = await _with_sqlite_retry(_op)
    logger.info("User %s unsubscribe from %s: %s", user_id, topic, "ok" if removed else "not subscribed")
    return removed


async def unsubscribe_all(user_id: int) -> bool:
    """Drop every subscription; False when there were none."""
    async def _op() -> int:
        async with open_db() as db:
            cur = await db.execute("DELETE FROM subscriptions WHERE user_id=?", (user_id,))
            await db.commit()
            return cur.rowcount

    removed = await _with_sqlite_retry(_op)
    if removed:
        logger.info("User %s unsubscribed from all (%s topics)", user_id, removed)
    return removed > 0


async def get_users_by_subscription(topic: str) -> list[int]:
    async with open_db() as db:
        async with db.execute(
            """SELECT s.user_id FROM subscriptions s
               LEFT JOIN users u ON u.user_id = s.user_id
               WHERE s.topic=? AND COALESCE(u.blacklisted, 0)=0
               ORDER BY s.created_at""",
            (topic,),
        ) as cur:
            rows = await cur.fetchall()
            return [r[0] for r in rows]


# ============ Bin locations ============

async def replace_bin_locations(points: Iterable[dict]) -> int:
    """Replace all stored bin points; returns the number inserted."""
    rows = [
        (float(p["latitude"]), float(p["longitude"]), str(p["address"]), str(p.get("preset") or ""))
        for p in points
    ]

    async def _op() -> int:
        async with open_db() as db:
            await db.execute("DELETE FROM bin_locations")
            await db.executemany(
                "INSERT INTO bin_locations(latitude, longitude, address, preset) VALUES(?, ?, ?, ?)",
                rows,
            )
            await db.commit()
            return len(rows)

    return await _with_sqlite_retry(_op)


async def add_bin_locations(points: Iterable[dict]) -> int:
    """Append bin points without touching existing ones."""
    rows = [
        (float(p["latitude"]), float(p["longitude"]), str(p["address"]), str(p.get("preset") or ""))
        for p in points
    ]

    async def _op() -> int:
        async with open_db() as db:
            await db.executemany(
                "INSERT INTO bin_locations(latitude, longitude, address, preset) VALUES(?, ?, ?, ?)",
                rows,
            )
            await db.commit()
            return len(rows)

    return await _with_sqlite_retry(_op)


async def list_bin_locations() -> list[BinLocation]:
    """Bin points eligible for the location search."""
    async with open_db() as db:
        async with db.execute(
            """SELECT id, latitude, longitude, address, preset FROM bin_locations
               WHERE instr(address, ?) = 0 AND preset != ?""",
            (EXCLUDED_ADDRESS_WORD, EXCLUDED_PRESET),
        ) as cur:
            rows = await cur.fetchall()
            return [BinLocation(*row) for row in rows]
