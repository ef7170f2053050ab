import json
import os
import sys
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

# config reads these at import time.
os.environ.setdefault("BOT_TOKEN", "123456:TEST")

ROUTES = {
    "start": {"label": "Главная", "children": ["recycling", "volunteer", "ecoadvent"]},
    "recycling": {"label": "Что сдавать", "children": ["plastic", "other"]},
    "plastic": {"label": "Пластик"},
    "other": {"label": "🔋 Опасные и прочие отходы"},
    "volunteer": {
        "label": "Стать волонтёром",
        "external": ["Заполнить анкету", "https://example.org/form"],
    },
    "ecoadvent": {"label": "Эко-адвент", "children": ["subscribe_advent"]},
    "subscribe_advent": {"label": "Подписаться"},
    "unsubscribe_advent": {"label": "Отписаться"},
}


def write_menu(directory: Path, routes: dict = ROUTES) -> tuple[Path, Path]:
    routes_path = directory / "routes.json"
    routes_path.write_text(json.dumps(routes, ensure_ascii=False), encoding="utf-8")
    contents = directory / "contents"
    contents.mkdir(exist_ok=True)
    for key in routes:
        (contents / f"{key}.md").write_text(f"<b>{key}</b> page", encoding="utf-8")
    (contents / "advent.md").write_text("*Day 1*. Sort it!", encoding="utf-8")
    return routes_path, contents


@pytest.fixture
def menu_files(tmp_path):
    return write_menu(tmp_path)


@pytest.fixture
def menu(menu_files):
    from routes import MenuService

    routes_path, contents = menu_files
    return MenuService(routes_path, contents)
