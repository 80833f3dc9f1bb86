"""Theme presets and the note style descriptor to Qt stylesheet conversion."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

DEFAULT_THEME = "glass"
CUSTOM_THEME = "custom"
LIGHT_BORDER = "rgba(0,0,0,0.1)"
DARK_BORDER = "rgba(255,255,255,0.1)"


@dataclass(frozen=True)
class ThemePreset:
    bg: str
    text: str
    opacity: float
    border: str


PRESETS: Dict[str, ThemePreset] = {
    "glass": ThemePreset(bg="#1e1e2e", text="#cdd6f4", opacity=0.4, border="rgba(255, 255, 255, 0.1)"),
    "paper": ThemePreset(bg="#ffffff", text="#202124", opacity=0.95, border="#e0e0e0"),
    "postit": ThemePreset(bg="#fff740", text="#202124", opacity=0.95, border="rgba(0,0,0,0.1)"),
    "custom": ThemePreset(bg="#1e1e2e", text="#cdd6f4", opacity=0.6, border="rgba(255, 255, 255, 0.1)"),
}

_RGBA_RE = re.compile(r"rgba?\(\s*([\d.]+)\s*,\s*([\d.]+)\s*,\s*([\d.]+)\s*(?:,\s*([\d.]+%?)\s*)?\)", re.IGNORECASE)


def border_for_theme(theme: str) -> str:
    return LIGHT_BORDER if theme in ("paper", "postit") else DARK_BORDER


def parse_hex_color(value: str) -> Optional[Tuple[int, int, int]]:
    token = (value or "").strip().lstrip("#")
    if len(token) == 3:
        token = "".join(ch * 2 for ch in token)
    if len(token) != 6:
        return None
    try:
        number = int(token, 16)
    except ValueError:
        return None
    return (number >> 16) & 0xFF, (number >> 8) & 0xFF, number & 0xFF


def adjust_color(hex_color: str, amount: int) -> str:
    """Lighten (positive) or darken (negative) every channel, clamped to 0..255."""
    rgb = parse_hex_color(hex_color)
    if rgb is None:
        return hex_color
    r, g, b = (max(0, min(255, channel + amount)) for channel in rgb)
    return f"#{r:02x}{g:02x}{b:02x}"


def _coerce_opacity(value: Any, fallback: float) -> float:
    try:
        opacity = float(value)
    except (TypeError, ValueError):
        return fallback
    return max(0.0, min(1.0, opacity))


def _qss_color(value: str, *, alpha: Optional[float] = None) -> Optional[str]:
    rgb = parse_hex_color(value)
    if rgb is not None:
        if alpha is None:
            return f"#{rgb[0]:02x}{rgb[1]:02x}{rgb[2]:02x}"
        return f"rgba({rgb[0]}, {rgb[1]}, {rgb[2]}, {round(alpha * 255)})"
    match = _RGBA_RE.fullmatch((value or "").strip())
    if match is None:
        return None
    r, g, b = (int(float(match.group(index))) for index in (1, 2, 3))
    raw_alpha = match.group(4)
    if raw_alpha is None:
        channel = 255
    elif raw_alpha.endswith("%"):
        channel = round(float(raw_alpha[:-1]) * 255 / 100)
    else:
        number = float(raw_alpha)
        channel = round(number * 255) if number <= 1.0 else int(number)
    return f"rgba({r}, {g}, {b}, {channel})"


def resolve_style(style: Optional[Mapping[str, Any]]) -> ThemePreset:
    """Fill a stored style descriptor from its preset, falling back to glass."""
    if not isinstance(style, Mapping):
        return PRESETS[DEFAULT_THEME]
    preset = PRESETS.get(str(style.get("type") or DEFAULT_THEME), PRESETS[DEFAULT_THEME])
    return ThemePreset(
        bg=str(style.get("bg") or preset.bg),
        text=str(style.get("text") or preset.text),
        opacity=_coerce_opacity(style.get("opacity"), preset.opacity),
        border=str(style.get("border") or preset.border),
    )


def style_to_qss(style: Optional[Mapping[str, Any]], selector: str = "#noteFrame") -> str:
    theme = resolve_style(style)
    defaults = PRESETS[DEFAULT_THEME]
    background = _qss_color(theme.bg, alpha=theme.opacity) or _qss_color(defaults.bg, alpha=defaults.opacity)
    foreground = _qss_color(theme.text) or defaults.text
    border = _qss_color(theme.border) or _qss_color(defaults.border)
    return (
        f"{selector} {{ background-color: {background}; color: {foreground}; "
        f"border: 1px solid {border}; }}\n"
        f"{selector} QTextBrowser, {selector} QPlainTextEdit {{ color: {foreground}; }}"
    )
