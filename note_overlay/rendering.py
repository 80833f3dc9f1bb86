"""Note text to display markup (pure, no Qt)."""
from __future__ import annotations

import html
import re

URL_PATTERN = re.compile(
    r"\b(?:https?|ftp|file)://[-A-Z0-9+&@#/%?=~_|!:,.;]*[-A-Z0-9+&@#/%=~_|]",
    re.IGNORECASE,
)


def render_note_html(text: str) -> str:
    """Escape ``text``, turn bare URLs into links and newlines into ``<br>``.

    Escaping runs first so the only markup in the result is the anchors built
    here around substrings matched by ``URL_PATTERN``.
    """
    if not text:
        return ""
    escaped = html.escape(text, quote=True)
    linked = URL_PATTERN.sub(_anchor, escaped)
    return linked.replace("\r\n", "\n").replace("\n", "<br>")


def _anchor(match: re.Match[str]) -> str:
    url = match.group(0)
    return f'<a href="{url}" target="_blank" rel="noopener noreferrer">{url}</a>'
