"""Contract between the overlay state machine and whatever draws the note."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

from note_store.record import Position, Size

from note_overlay.states import OverlayState


@dataclass(frozen=True)
class SurfaceView:
    """Everything a surface needs to draw one frame of the note.

    ``size`` is None while minimized (the surface uses its own fixed
    minimized geometry). ``content_html`` is None while editing so the
    editor is never overwritten; ``edit_text`` seeds the editor.
    """

    state: OverlayState
    position: Position
    size: Optional[Size]
    content_html: Optional[str]
    edit_text: Optional[str] = None
    style: Optional[Dict[str, Any]] = None
    unsaved: bool = False

    @property
    def visible(self) -> bool:
        return self.state.displayed

    @property
    def minimized(self) -> bool:
        return self.size is None


class OverlaySurface(Protocol):
    """Opaque rendering root owned by the state machine."""

    def mount(self) -> None: ...

    def unmount(self) -> None: ...

    def apply(self, view: SurfaceView) -> None: ...

    def edit_buffer(self) -> Optional[str]: ...
