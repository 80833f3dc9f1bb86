"""Hostname keys derived from page URLs."""
from __future__ import annotations

from urllib.parse import urlsplit


class InvalidSourceUrl(ValueError):
    """The active page URL has no usable hostname."""


def hostname_from_url(url: str) -> str:
    """Return the hostname key for ``url``; raise ``InvalidSourceUrl`` when there is none."""
    candidate = (url or "").strip()
    if not candidate:
        raise InvalidSourceUrl("empty URL")
    try:
        parts = urlsplit(candidate)
        hostname = parts.hostname
    except ValueError as exc:
        raise InvalidSourceUrl(f"{candidate!r} is not a valid URL: {exc}") from exc
    if not parts.scheme or not hostname:
        raise InvalidSourceUrl(f"{candidate!r} has no hostname")
    return hostname
