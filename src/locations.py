"""Nearest recycling bins for a shared location."""

from __future__ import annotations

import html
import math
from collections.abc import Iterable

from database import BinLocation

EARTH_RADIUS_KM = 6371.0
MAX_BINS_IN_REPLY = 2
GLASS_PRESET = "islands#darkgreenIcon"
OPERATOR_MAP_URL = "https://new.esoo39.ru/rso-maps/"
MAIN_POINT_ADDRESS = "ул. 5-я Причальная 2а"

OPERATOR_LINK = f'\n👉 Проверить самостоятельно <a href="{OPERATOR_MAP_URL}">на сайте обслуживающей компании ЕСОО</a>'
NOT_FOUND_HEADER = "<b>3- и 4-секционные контейнеры РСО в радиусе 1 км не найдены.</b>"
FOUND_HEADER = "<b>Ближайшие 3- и 4-секционные контейнеры РСО:</b>"
FOOTER = (
    "\n\nОтправьте новую геопозицию, если хотите найти другие контейнеры.\n"
    "Отправьте «Бот», если хотите вернуться в начало."
)


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    p1, p2 = math.radians(lat1), math.radians(lat2)
    dp, dl = math.radians(lat2 - lat1), math.radians(lon2 - lon1)
    a = math.sin(dp / 2) ** 2 + math.cos(p1) * math.cos(p2) * math.sin(dl / 2) ** 2
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def find_nearby(
    bins: Iterable[BinLocation],
    latitude: float,
    longitude: float,
    *,
    radius_km: float = 1.0,
) -> list[tuple[float, BinLocation]]:
    """(distance_km, bin) pairs within `radius_km`, closest first."""
    nearby = []
    for bin_location in bins:
        distance = haversine_km(latitude, longitude, bin_location.latitude, bin_location.longitude)
        if distance <= radius_km:
            nearby.append((distance, bin_location))
    nearby.sort(key=lambda item: item[0])
    return nearby


def route_url(from_lat: float, from_lon: float, to_lat: float, to_lon: float) -> str:
    return f"https://yandex.ru/maps/?rtext={from_lat},{from_lon}~{to_lat},{to_lon}&amp;rtt=pedestrian"


def format_nearby_message(
    nearby: list[tuple[float, BinLocation]],
    latitude: float,
    longitude: float,
    *,
    main_point: tuple[float, float],
) -> str:
    """HTML reply for a location message."""
    if not nearby:
        parts = [NOT_FOUND_HEADER]
    else:
        parts = [FOUND_HEADER]
        for distance, bin_location in nearby[:MAX_BINS_IN_REPLY]:
            glass = "со стеклом" if bin_location.preset == GLASS_PRESET else "без стекла"
            link = route_url(latitude, longitude, bin_location.latitude, bin_location.longitude)
            parts.append(
                f'\n{round(distance * 1000)} м <a href="{link}">{html.escape(bin_location.address)}</a> {glass}'
            )
    parts.append(OPERATOR_LINK)

    main_lat, main_lon = main_point
    distance_to_main = round(haversine_km(latitude, longitude, main_lat, main_lon) * 1000)
    if distance_to_main < 1000:
        link = route_url(latitude, longitude, main_lat, main_lon)
        parts.append(
            "\n\nПлощадка раздельного сбора с самым большим перечнем принимаемых фракций "
            f'находится на <a href="{link}">{MAIN_POINT_ADDRESS}</a> в радиусе {distance_to_main} м.'
        )
    else:
        parts.append(
            "\n\nПлощадка раздельного сбора с самым большим перечнем принимаемых фракций "
            f'находится на <a href="https://yandex.ru/maps/?text={main_lat},{main_lon}">{MAIN_POINT_ADDRESS}</a>.'
        )
    parts.append(FOOTER)
    return "".join(parts)
