"""Anchor-pair geometry helpers (pure, no Qt)."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from note_store.record import Position, Size

DEFAULT_WIDTH_PX = 300.0
# Minimized geometry is a local-only rule; it is never persisted as size.
MINIMIZED_WIDTH_PX = 160.0
MINIMIZED_HEIGHT_PX = 32.0


@dataclass(frozen=True)
class Rect:
    left: float
    top: float
    width: float
    height: float

    def translated(self, dx: float, dy: float) -> "Rect":
        return Rect(self.left + dx, self.top + dy, self.width, self.height)


def parse_length(value: Optional[str], extent: float) -> Optional[float]:
    """Resolve ``'20px'``, ``'50%'`` or a bare number against ``extent``."""
    if value is None:
        return None
    token = str(value).strip().lower()
    if not token or token == "auto":
        return None
    try:
        if token.endswith("%"):
            return float(token[:-1]) * extent / 100.0
        if token.endswith("px"):
            token = token[:-2]
        return float(token)
    except ValueError:
        return None


def format_px(value: float) -> str:
    return f"{value:g}px"


def resolve_rect(
    position: Position,
    size: Size,
    viewport_width: float,
    viewport_height: float,
    *,
    minimized: bool = False,
    natural_height: float = 0.0,
) -> Rect:
    """Screen rectangle for a record's anchors inside the viewport."""
    if minimized:
        width, height = MINIMIZED_WIDTH_PX, MINIMIZED_HEIGHT_PX
    else:
        width = parse_length(size.width, viewport_width) or DEFAULT_WIDTH_PX
        height = parse_length(size.height, viewport_height) or natural_height

    h_key, h_value = position.horizontal
    offset_x = parse_length(h_value, viewport_width) or 0.0
    left = offset_x if h_key == "left" else viewport_width - offset_x - width

    v_key, v_value = position.vertical
    offset_y = parse_length(v_value, viewport_height) or 0.0
    top = offset_y if v_key == "top" else viewport_height - offset_y - height
    return Rect(left, top, width, height)
