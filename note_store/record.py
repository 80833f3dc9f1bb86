"""Note record model shared by the overlay and the settings surface."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional

DEFAULT_WIDTH = "300px"
DEFAULT_HEIGHT = "auto"
DEFAULT_POSITION: Dict[str, Optional[str]] = {"top": "20px", "right": "20px"}
DEFAULT_SIZE: Dict[str, str] = {"width": DEFAULT_WIDTH, "height": DEFAULT_HEIGHT}

_ANCHOR_KEYS = ("top", "left", "right", "bottom")


def _anchor(value: Any) -> Optional[str]:
    # Older writers stored a cleared anchor as "auto".
    if value is None:
        return None
    token = str(value).strip()
    if not token or token.lower() == "auto":
        return None
    return token


@dataclass(frozen=True)
class Position:
    """Anchor pair: one of left/right and one of top/bottom is authoritative."""

    top: Optional[str] = None
    left: Optional[str] = None
    right: Optional[str] = None
    bottom: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Any) -> "Position":
        if not isinstance(data, Mapping):
            return cls(**DEFAULT_POSITION)
        anchors = {key: _anchor(data.get(key)) for key in _ANCHOR_KEYS}
        if all(value is None for value in anchors.values()):
            return cls(**DEFAULT_POSITION)
        return cls(**anchors)

    @classmethod
    def top_left(cls, left: str, top: str) -> "Position":
        return cls(top=top, left=left, right=None, bottom=None)

    @property
    def horizontal(self) -> tuple[str, Optional[str]]:
        if self.left is not None:
            return "left", self.left
        return "right", self.right

    @property
    def vertical(self) -> tuple[str, Optional[str]]:
        if self.top is not None:
            return "top", self.top
        return "bottom", self.bottom

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {key: getattr(self, key) for key in _ANCHOR_KEYS}


@dataclass(frozen=True)
class Size:
    width: str = DEFAULT_WIDTH
    height: str = DEFAULT_HEIGHT

    @classmethod
    def from_mapping(cls, data: Any) -> "Size":
        if not isinstance(data, Mapping):
            return cls()
        width = str(data.get("width") or DEFAULT_WIDTH)
        height = str(data.get("height") or DEFAULT_HEIGHT)
        return cls(width=width, height=height)

    def to_dict(self) -> Dict[str, str]:
        return {"width": self.width, "height": self.height}


@dataclass(frozen=True)
class NoteRecord:
    """One note per hostname key.

    Absent fields fall back to the defaults below so records written by older
    versions (or by a settings surface that only knows some fields) stay
    readable.
    """

    text: str = ""
    visible: bool = True
    minimized: bool = False
    position: Position = field(default_factory=lambda: Position(**DEFAULT_POSITION))
    size: Size = field(default_factory=Size)
    style: Optional[Dict[str, Any]] = None

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "NoteRecord":
        if not isinstance(data, Mapping):
            return cls()
        text = data.get("text")
        style = data.get("style")
        visible = data.get("visible")
        return cls(
            text=text if isinstance(text, str) else "",
            visible=True if visible is None else bool(visible),
            minimized=bool(data.get("minimized", False)),
            position=Position.from_mapping(data.get("position")),
            size=Size.from_mapping(data.get("size")),
            style=dict(style) if isinstance(style, Mapping) else None,
        )

    @property
    def has_text(self) -> bool:
        return bool(self.text.strip())

    def with_changes(self, **changes: Any) -> "NoteRecord":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "text": self.text,
            "visible": self.visible,
            "minimized": self.minimized,
            "position": self.position.to_dict(),
            "size": self.size.to_dict(),
        }
        if self.style is not None:
            payload["style"] = dict(self.style)
        return payload
