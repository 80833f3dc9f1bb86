"""Header drag tracking for the note surface.

Kept free of Qt types; the surface feeds pointer coordinates in and supplies
thin adapters for reading and moving its own geometry.
"""
from __future__ import annotations

import logging
from typing import Callable, Optional, Tuple

from note_store.record import Position

from note_overlay.geometry import Rect, format_px

_LOGGER = logging.getLogger("SiteNotes.Overlay.Drag")

Origin = Tuple[float, float]


class DragController:
    """Tracks one drag gesture and commits the final left/top pair once."""

    def __init__(
        self,
        *,
        set_position_fn: Callable[[Position], None],
        commit_fn: Callable[[Position], None],
        current_origin_fn: Optional[Callable[[], Optional[Origin]]] = None,
    ) -> None:
        self._set_position = set_position_fn
        self._commit = commit_fn
        self._current_origin = current_origin_fn
        self._active = False
        self._origin: Origin = (0.0, 0.0)
        self._last_pointer: Origin = (0.0, 0.0)

    @property
    def active(self) -> bool:
        return self._active

    def press(self, rect: Rect, x: float, y: float, *, on_button: bool = False) -> bool:
        if on_button or self._active:
            return False
        self._active = True
        self._origin = (rect.left, rect.top)
        self._last_pointer = (x, y)
        # Lock to left/top so deltas apply the same way whatever the stored anchors were.
        self._set_position(self._position())
        _LOGGER.debug("Drag started at origin=%s pointer=%s", self._origin, self._last_pointer)
        return True

    def move(self, x: float, y: float) -> Optional[Position]:
        if not self._active:
            return None
        dx = x - self._last_pointer[0]
        dy = y - self._last_pointer[1]
        self._last_pointer = (x, y)
        base = self._current_origin() if self._current_origin is not None else None
        left, top = base if base is not None else self._origin
        self._origin = (left + dx, top + dy)
        position = self._position()
        self._set_position(position)
        return position

    def release(self) -> Optional[Position]:
        if not self._active:
            return None
        self._active = False
        position = self._position()
        _LOGGER.debug("Drag finished at left=%s top=%s", position.left, position.top)
        self._commit(position)
        return position

    def _position(self) -> Position:
        return Position.top_left(format_px(self._origin[0]), format_px(self._origin[1]))
