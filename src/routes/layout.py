"""Button layout engine.

Two packing policies are supported and chosen per call site:

  FixedChunk(n)  - rows of exactly n buttons, last row ragged.
  LengthAware()  - up to two buttons per row; a label longer than the
                   threshold gets a full-width row of its own because long
                   labels wrap badly in a 2-column grid on narrow clients.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from routes.models import Button, ButtonGrid, CallbackAction, Route

LONG_LABEL_THRESHOLD = 20
DEFAULT_ROW_WIDTH = 2
DEFAULT_CHUNK_SIZE = 3


@dataclass(frozen=True, slots=True)
class FixedChunk:
    size: int = DEFAULT_CHUNK_SIZE

    def __post_init__(self) -> None:
        if self.size < 1:
            raise ValueError(f"chunk size must be positive, got {self.size}")


@dataclass(frozen=True, slots=True)
class LengthAware:
    threshold: int = LONG_LABEL_THRESHOLD
    row_width: int = DEFAULT_ROW_WIDTH

    def __post_init__(self) -> None:
        if self.row_width < 1:
            raise ValueError(f"row width must be positive, got {self.row_width}")


PackingPolicy = FixedChunk | LengthAware


def parse_packing_policy(value: str | None) -> PackingPolicy:
    """Parse `length_aware`, `fixed` or `fixed:<n>` (case-insensitive)."""
    raw = (value or "").strip().lower()
    if raw in {"", "length_aware", "length-aware"}:
        return LengthAware()
    if raw == "fixed":
        return FixedChunk()
    if raw.startswith("fixed:"):
        size = raw.split(":", 1)[1].strip()
        if not size.isdigit():
            raise ValueError(f"invalid fixed chunk size: {value!r}")
        return FixedChunk(int(size))
    raise ValueError(f"unknown packing policy: {value!r}")


def route_button(route: Route) -> Button:
    return Button(label=route.label, action=CallbackAction(route.key))


def _pack_fixed(buttons: list[Button], size: int) -> list[tuple[Button, ...]]:
    return [tuple(buttons[i:i + size]) for i in range(0, len(buttons), size)]


def _pack_length_aware(buttons: list[Button], policy: LengthAware) -> list[tuple[Button, ...]]:
    rows: list[tuple[Button, ...]] = []
    current: list[Button] = []
    for button in buttons:
        if len(button.label) > policy.threshold:
            if current:
                rows.append(tuple(current))
                current = []
            rows.append((button,))
            continue
        current.append(button)
        if len(current) == policy.row_width:
            rows.append(tuple(current))
            current = []
    if current:
        rows.append(tuple(current))
    return rows


def layout(children: Sequence[Route], policy: PackingPolicy) -> ButtonGrid:
    """Arrange child routes into rows of callback buttons, keeping their order."""
    buttons = [route_button(child) for child in children]
    if isinstance(policy, FixedChunk):
        rows = _pack_fixed(buttons, policy.size)
    elif isinstance(policy, LengthAware):
        rows = _pack_length_aware(buttons, policy)
    else:
        raise TypeError(f"unsupported packing policy: {policy!r}")
    return tuple(rows)
