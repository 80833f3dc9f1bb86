"""Bundled stylesheet lookup by logical name."""
from __future__ import annotations

import logging
from pathlib import Path

STYLES_DIR = Path(__file__).resolve().parent / "styles"

_LOGGER = logging.getLogger("SiteNotes.Overlay")


def stylesheet_path(name: str) -> Path:
    stem = name[:-4] if name.endswith(".qss") else name
    return STYLES_DIR / f"{stem}.qss"


def load_stylesheet(name: str) -> str:
    """Return the bundled stylesheet text, or an empty sheet when it is missing."""
    path = stylesheet_path(name)
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        _LOGGER.warning("Stylesheet '%s' not found at %s", name, path)
        return ""
    except OSError as exc:
        _LOGGER.warning("Failed to read stylesheet '%s' from %s: %s", name, path, exc)
        return ""
