"""Refresh the bin points used by the location search.

    python -m tools.sync_bin_locations esoo
    python -m tools.sync_bin_locations rspko --file rspko.json
"""

import argparse
import asyncio
import json
import logging
from pathlib import Path

import aiohttp

from config import CFG
from database import add_bin_locations, init_db, replace_bin_locations
from logging_setup import configure_logging

RSPKO_PRESET = "setka"
FETCH_TIMEOUT_SEC = 30

logger = logging.getLogger(__name__)


def parse_esoo_features(data: dict) -> list[dict]:
    """ESOO map feed (GeoJSON-like, lon/lat order) -> bin point dicts."""
    points = []
    for feature in data.get("features", []):
        try:
            longitude, latitude = feature["geometry"]["coordinates"][:2]
            points.append(
                {
                    "latitude": float(latitude),
                    "longitude": float(longitude),
                    "address": feature["properties"]["iconCaption"],
                    "preset": feature.get("options", {}).get("preset", ""),
                }
            )
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Skipping malformed feature %s: %s", feature.get("id"), exc)
    return points


def parse_rspko_points(data: list) -> list[dict]:
    return [
        {
            "latitude": float(item["latitude"]),
            "longitude": float(item["longitude"]),
            "address": item["address"],
            "preset": RSPKO_PRESET,
        }
        for item in data
    ]


async def fetch_esoo_feed(url: str) -> dict:
    timeout = aiohttp.ClientTimeout(total=FETCH_TIMEOUT_SEC)
    async with aiohttp.ClientSession(timeout=timeout) as session:
        async with session.get(url) as resp:
            if resp.status != 200:
                raise RuntimeError(f"ESOO feed returned {resp.status}")
            # Served as application/javascript.
            return await resp.json(content_type=None)


async def sync_esoo(url: str) -> int:
    logger.info("Synchronising ESOO points from %s", url)
    points = parse_esoo_features(await fetch_esoo_feed(url))
    if not points:
        raise RuntimeError("ESOO feed contains no points; keeping stored locations")
    inserted = await replace_bin_locations(points)
    logger.info("Inserted %s ESOO records", inserted)
    return inserted


async def sync_rspko(path: Path) -> int:
    logger.info("Synchronising RSPKO points from %s", path)
    points = parse_rspko_points(json.loads(path.read_text(encoding="utf-8")))
    inserted = await add_bin_locations(points)
    logger.info("Inserted %s RSPKO records", inserted)
    return inserted


async def main() -> None:
    parser = argparse.ArgumentParser(description="Synchronise recycling bin locations")
    sub = parser.add_subparsers(dest="source", required=True)
    esoo = sub.add_parser("esoo", help="Replace all points with the ESOO map feed")
    esoo.add_argument("--url", default=CFG.bin_feed_url, help="Feed URL")
    rspko = sub.add_parser("rspko", help="Append points from an RSPKO JSON export")
    rspko.add_argument("--file", type=Path, default=Path("rspko.json"), help="JSON file path")
    args = parser.parse_args()

    configure_logging("ecobot-sync")
    await init_db()
    if args.source == "esoo":
        inserted = await sync_esoo(args.url)
    else:
        inserted = await sync_rspko(args.file)
    print(f"Inserted {inserted} records")


if __name__ == "__main__":
    asyncio.run(main())
