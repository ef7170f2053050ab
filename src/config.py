import os
import time
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from routes.layout import PackingPolicy, parse_packing_policy

# .env from the working directory (where the bot is started)
env_path = Path.cwd() / ".env"
load_dotenv(env_path)

PACKAGE_DIR = Path(__file__).resolve().parent
DEFAULT_ROUTES_PATH = PACKAGE_DIR / "routes" / "data" / "routes.json"
DEFAULT_CONTENTS_DIR = PACKAGE_DIR / "routes" / "data" / "contents"
DEFAULT_ADVENT_PHOTO_URL = (
    "https://raw.githubusercontent.com/Traf333/ecobot/refs/heads/main/src/images/advent5.jpg"
)
DEFAULT_BIN_FEED_URL = "https://new.esoo39.ru/wp-content/themes/appointment/js/data.js?v=0.72"


def _set_process_timezone() -> None:
    """Apply TZ from env so datetime.now() matches local time."""
    tz = os.getenv("BOT_TIMEZONE") or "Europe/Kaliningrad"
    if tz:
        os.environ["TZ"] = tz
        if hasattr(time, "tzset"):
            time.tzset()


_set_process_timezone()


@dataclass
class Config:
    token: str
    admin_ids: list[int]  # literal ID match, no roles
    test_user_id: int | None  # recipient of /testmessage and /adventtest
    # Menu
    routes_path: Path
    contents_dir: Path
    home_route: str
    menu_packing: PackingPolicy
    # Broadcasts
    broadcast_delay_sec: float
    advent_photo_url: str
    advent_topic: str
    # Bin locations
    bin_search_radius_km: float
    main_point_lat: float
    main_point_lon: float
    bin_feed_url: str


def _clean(value: str | None) -> str:
    if value is None:
        return ""
    return value.strip().strip('"').strip("'")


def parse_admin_ids(env_value: str) -> list[int]:
    """Parse admin IDs separated by commas or spaces."""
    if not env_value:
        return []
    env_value = _clean(env_value)
    ids = [id.strip() for id in env_value.replace(",", " ").split()]
    return [int(id) for id in ids if id.isdigit()]


def parse_int(value: str | None) -> int | None:
    if value is None:
        return None
    value = _clean(value)
    if not value:
        return None
    return int(value)


def parse_float(value: str | None, default: float) -> float:
    if value is None:
        return default
    value = _clean(value)
    if not value:
        return default
    return float(value)


def parse_path(value: str | None, default: Path) -> Path:
    value = _clean(value)
    if not value:
        return default
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = Path.cwd() / path
    return path


CFG = Config(
    token=_clean(os.environ["BOT_TOKEN"]),
    admin_ids=parse_admin_ids(os.getenv("ADMIN_IDS", "")),
    test_user_id=parse_int(os.getenv("TEST_USER_ID")),
    routes_path=parse_path(os.getenv("ROUTES_PATH"), DEFAULT_ROUTES_PATH),
    contents_dir=parse_path(os.getenv("CONTENTS_DIR"), DEFAULT_CONTENTS_DIR),
    home_route=_clean(os.getenv("HOME_ROUTE")) or "start",
    menu_packing=parse_packing_policy(os.getenv("MENU_PACKING")),
    broadcast_delay_sec=parse_float(os.getenv("BROADCAST_DELAY_SEC"), 2.0),
    advent_photo_url=_clean(os.getenv("ADVENT_PHOTO_URL")) or DEFAULT_ADVENT_PHOTO_URL,
    advent_topic=_clean(os.getenv("ADVENT_TOPIC")) or "advent",
    bin_search_radius_km=parse_float(os.getenv("BIN_SEARCH_RADIUS_KM"), 1.0),
    # Separate collection site, ul. 5-ya Prichalnaya 2a
    main_point_lat=parse_float(os.getenv("MAIN_POINT_LAT"), 54.6893),
    main_point_lon=parse_float(os.getenv("MAIN_POINT_LON"), 20.4597),
    bin_feed_url=_clean(os.getenv("BIN_FEED_URL")) or DEFAULT_BIN_FEED_URL,
)

# DB path: from env or relative to the working directory
DB_PATH = os.getenv("DB_PATH", str(Path.cwd() / "ecobot.db"))


def is_admin(user_id: int | None) -> bool:
    return user_id is not None and user_id in CFG.admin_ids
