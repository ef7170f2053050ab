import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from aiogram.exceptions import TelegramRetryAfter

from config import CFG

# One recipient at a time, paced by BROADCAST_DELAY_SEC.
BROADCAST_CONCURRENCY = 1
BROADCAST_MAX_RETRIES = 1

logger = logging.getLogger(__name__)


@dataclass
class BroadcastReport:
    sent: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.sent) + len(self.failed)


class BroadcastRateLimiter:
    """Global rate limiter for mass sends (token interval)."""

    def __init__(self, rate_per_sec: float):
        self._interval = 1.0 / rate_per_sec if rate_per_sec > 0 else 0.0
        self._lock = asyncio.Lock()
        self._next_time = 0.0

    async def wait(self) -> None:
        if self._interval <= 0:
            return
        loop = asyncio.get_running_loop()
        async with self._lock:
            now = loop.time()
            if now < self._next_time:
                await asyncio.sleep(self._next_time - now)
                now = loop.time()
            self._next_time = max(self._next_time, now) + self._interval


def rate_from_delay(delay_sec: float) -> float:
    return 1.0 / delay_sec if delay_sec > 0 else 0.0


async def _broadcast_worker(
    queue: asyncio.Queue,
    limiter: BroadcastRateLimiter,
    send_fn: Callable[[int], Awaitable[None]],
    report: BroadcastReport,
    *,
    retries: int,
) -> None:
    while True:
        chat_id = await queue.get()
        if chat_id is None:
            queue.task_done()
            break
        try:
            attempt = 0
            while True:
                try:
                    await limiter.wait()
                    await send_fn(chat_id)
                    break
                except TelegramRetryAfter as exc:
                    attempt += 1
                    if attempt > retries:
                        raise
                    logger.warning(
                        "Telegram rate limit: retry_after=%s chat_id=%s attempt=%s",
                        exc.retry_after,
                        chat_id,
                        attempt,
                    )
                    await asyncio.sleep(exc.retry_after)
            report.sent.append(chat_id)
            logger.info("Message sent to user: %s", chat_id)
        except Exception:
            report.failed.append(chat_id)
            logger.exception("Failed to send message to user %s", chat_id)
        finally:
            queue.task_done()


async def broadcast_messages(
    chat_ids: list[int],
    send_fn: Callable[[int], Awaitable[None]],
    *,
    rate_per_sec: float | None = None,
    concurrency: int = BROADCAST_CONCURRENCY,
    retries: int = BROADCAST_MAX_RETRIES,
) -> BroadcastReport:
    """Send to every chat id; a failing recipient never stops the batch."""
    report = BroadcastReport()
    if not chat_ids:
        return report
    if rate_per_sec is None:
        rate_per_sec = rate_from_delay(CFG.broadcast_delay_sec)
    limiter = BroadcastRateLimiter(rate_per_sec)
    queue: asyncio.Queue = asyncio.Queue()
    for chat_id in chat_ids:
        queue.put_nowait(chat_id)
    workers = [
        asyncio.create_task(
            _broadcast_worker(queue, limiter, send_fn, report, retries=retries)
        )
        for _ in range(max(1, concurrency))
    ]
    await queue.join()
    for _ in workers:
        queue.put_nowait(None)
    await asyncio.gather(*workers, return_exceptions=True)
    logger.info("Broadcast finished: sent=%s failed=%s", len(report.sent), len(report.failed))
    return report
