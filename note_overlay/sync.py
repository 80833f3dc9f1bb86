"""Folds change-feed notifications for one hostname into the overlay."""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from note_store.store import JsonNoteStore

from note_overlay.state_machine import NoteOverlay

_LOGGER = logging.getLogger("SiteNotes.Overlay.Sync")


class RemoteSyncListener:
    """Subscribes once per overlay lifetime and forwards remote updates."""

    def __init__(self, store: JsonNoteStore, overlay: NoteOverlay) -> None:
        self._store = store
        self._overlay = overlay
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._applied = 0
        self._echoes = 0

    @property
    def subscribed(self) -> bool:
        return self._unsubscribe is not None

    @property
    def applied_count(self) -> int:
        return self._applied

    @property
    def echo_count(self) -> int:
        return self._echoes

    def start(self) -> None:
        if self._unsubscribe is not None:
            return
        self._unsubscribe = self._store.subscribe(self._overlay.hostname, self.handle_change)
        _LOGGER.debug("Subscribed to note changes for %s", self._overlay.hostname)

    def stop(self) -> None:
        unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is None:
            return
        unsubscribe()
        _LOGGER.debug("Unsubscribed from note changes for %s", self._overlay.hostname)

    def handle_change(self, old_value: Optional[Dict[str, Any]], new_value: Optional[Dict[str, Any]]) -> None:
        if self._overlay.merger.consume_echo(self._overlay.hostname, new_value):
            self._echoes += 1
            return
        self._applied += 1
        if new_value is None:
            _LOGGER.info("Note for %s was removed from storage", self._overlay.hostname)
        self._overlay.apply_remote(new_value)
