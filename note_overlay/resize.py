"""Decides whether a finished resize gesture should be persisted."""
from __future__ import annotations

from typing import Optional

from note_store.record import Size


class ResizeCommitTracker:
    """Decides whether a finished pointer gesture resized the expanded surface."""

    def __init__(self, size: Optional[Size] = None, *, minimized: bool = False) -> None:
        self._last_size = size or Size()
        self._minimized = minimized
        self._observed = False

    @property
    def last_size(self) -> Size:
        return self._last_size

    def sync(self, size: Size, *, minimized: bool) -> None:
        self._last_size = size
        self._minimized = minimized
        if minimized:
            self._observed = False

    def observe(self) -> None:
        if not self._minimized:
            self._observed = True

    def release(self, width: Optional[str], height: Optional[str]) -> Optional[Size]:
        observed, self._observed = self._observed, False
        if self._minimized or not observed or not width or not height:
            return None
        candidate = Size(width=width, height=height)
        if candidate == self._last_size:
            return None
        self._last_size = candidate
        return candidate
