from __future__ import annotations

from note_overlay.themes import (
    DARK_BORDER,
    LIGHT_BORDER,
    PRESETS,
    adjust_color,
    border_for_theme,
    parse_hex_color,
    resolve_style,
    style_to_qss,
)


def test_presets_match_published_palette() -> None:
    assert (PRESETS["glass"].bg, PRESETS["glass"].text, PRESETS["glass"].opacity) == ("#1e1e2e", "#cdd6f4", 0.4)
    assert (PRESETS["paper"].bg, PRESETS["paper"].opacity) == ("#ffffff", 0.95)
    assert (PRESETS["postit"].bg, PRESETS["postit"].text) == ("#fff740", "#202124")
    assert PRESETS["custom"].opacity == 0.6


def test_border_for_theme() -> None:
    assert border_for_theme("paper") == LIGHT_BORDER
    assert border_for_theme("postit") == LIGHT_BORDER
    assert border_for_theme("glass") == DARK_BORDER
    assert border_for_theme("custom") == DARK_BORDER


def test_parse_hex_color() -> None:
    assert parse_hex_color("#abc") == (170, 187, 204)
    assert parse_hex_color("1e1e2e") == (30, 30, 46)
    assert parse_hex_color("#12345") is None
    assert parse_hex_color("#zzzzzz") is None


def test_adjust_color_clamps_channels() -> None:
    assert adjust_color("#1e1e2e", 20) == "#323242"
    assert adjust_color("#FFFFFF", 20) == "#ffffff"
    assert adjust_color("#050505", -10) == "#000000"
    assert adjust_color("red", 20) == "red"


def test_resolve_style_falls_back_to_preset_fields() -> None:
    theme = resolve_style({"type": "postit", "opacity": "bad"})
    assert theme.bg == "#fff740"
    assert theme.opacity == 0.95
    assert resolve_style({"type": "custom", "opacity": 3}).opacity == 1.0
    assert resolve_style(None) == PRESETS["glass"]
    assert resolve_style({"type": "neon"}).bg == PRESETS["glass"].bg


def test_default_style_qss() -> None:
    qss = style_to_qss(None)
    assert "#noteFrame { background-color: rgba(30, 30, 46, 102); color: #cdd6f4;" in qss
    assert "border: 1px solid rgba(255, 255, 255, 26);" in qss


def test_custom_style_qss_uses_stored_colours() -> None:
    qss = style_to_qss(
        {"type": "custom", "bg": "#123456", "text": "#eeeeee", "opacity": 1, "border": "rgba(0,0,0,0.1)"},
        selector="#frame",
    )
    assert "#frame { background-color: rgba(18, 52, 86, 255); color: #eeeeee;" in qss
    assert "border: 1px solid rgba(0, 0, 0, 26);" in qss
    assert "#frame QTextBrowser, #frame QPlainTextEdit { color: #eeeeee; }" in qss


def test_unparseable_colours_fall_back_to_glass() -> None:
    qss = style_to_qss({"type": "custom", "bg": "not-a-colour", "text": "also-bad", "border": "??"})
    assert "background-color: rgba(30, 30, 46, 102)" in qss
    assert "color: #cdd6f4" in qss
