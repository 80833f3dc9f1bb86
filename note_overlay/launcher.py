"""Entry point for the note overlay: Qt GUI thread plus the core event loop."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Optional

from PyQt6.QtCore import QTimer
from PyQt6.QtWidgets import QApplication

from note_settings.hostname import InvalidSourceUrl, hostname_from_url
from note_store.merger import RecordMerger
from note_store.record import Position, Size
from note_store.store import JsonNoteStore

from note_overlay.config import load_settings
from note_overlay.logging_utils import configure_logging
from note_overlay.loop_thread import EventLoopThread
from note_overlay.qt_surface import QtNoteSurface
from note_overlay.state_machine import NoteOverlay
from note_overlay.states import InvalidTransition
from note_overlay.sync import RemoteSyncListener

_LOGGER = logging.getLogger("SiteNotes.Overlay")


class OverlayActions:
    """Forwards surface intents from the GUI thread onto the core loop."""

    def __init__(self, loop_thread: EventLoopThread) -> None:
        self._loop_thread = loop_thread
        self.overlay: Optional[NoteOverlay] = None

    def toggle_minimize(self) -> None:
        if self.overlay is not None:
            self._loop_thread.submit(self.overlay.toggle_minimize(), label="toggle_minimize")

    def begin_edit(self) -> None:
        if self.overlay is not None:
            self._loop_thread.call_soon(self._guarded_begin_edit)

    def commit_edit(self, text: str) -> None:
        if self.overlay is not None:
            self._loop_thread.submit(self.overlay.commit_edit(text), label="commit_edit")

    def commit_position(self, position: Position) -> None:
        if self.overlay is not None:
            self._loop_thread.submit(self.overlay.commit_position(position), label="commit_position")

    def commit_size(self, size: Size) -> None:
        if self.overlay is not None:
            self._loop_thread.submit(self.overlay.commit_size(size), label="commit_size")

    def _guarded_begin_edit(self) -> None:
        if self.overlay is None:
            return
        try:
            self.overlay.begin_edit()
        except InvalidTransition as exc:
            _LOGGER.debug("Ignoring double-click: %s", exc)


def resolve_hostname(args: argparse.Namespace) -> str:
    if args.hostname:
        return str(args.hostname).strip().lower()
    return hostname_from_url(args.url or "")


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Site note overlay for one hostname")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--url", help="Page URL whose hostname selects the note")
    target.add_argument("--hostname", help="Hostname key of the note")
    parser.add_argument("--store", help="Path to the notes JSON store")
    parser.add_argument("--config", help="Path to site_notes_settings.json")
    args = parser.parse_args(argv)

    settings = load_settings(Path(args.config).expanduser() if args.config else None)
    configure_logging("site-notes-overlay.log", debug_enabled=settings.debug, retention=settings.log_retention)
    try:
        hostname = resolve_hostname(args)
    except InvalidSourceUrl as exc:
        _LOGGER.error("Cannot derive a hostname: %s", exc)
        print(f"Invalid URL: {exc}", file=sys.stderr)
        return 2
    store_path = Path(args.store).expanduser() if args.store else settings.store_path
    _LOGGER.info("Starting note overlay for %s (pid=%s, store=%s)", hostname, os.getpid(), store_path)

    app = QApplication(sys.argv)
    app.setQuitOnLastWindowClosed(False)
    signal.signal(signal.SIGINT, lambda *_: app.quit())
    heartbeat = QTimer()
    heartbeat.timeout.connect(lambda: None)
    heartbeat.start(250)
    loop_thread = EventLoopThread()
    loop_thread.start()

    store = JsonNoteStore(store_path)
    actions = OverlayActions(loop_thread)
    surface = QtNoteSurface(actions)
    merger = RecordMerger(
        store,
        write_attempts=settings.write_attempts,
        retry_backoff_seconds=settings.retry_backoff_seconds,
    )
    overlay = NoteOverlay(hostname, store, lambda: surface, merger=merger)
    actions.overlay = overlay
    listener = RemoteSyncListener(store, overlay)

    background = []

    async def _start() -> None:
        listener.start()
        await overlay.load()
        background.append(asyncio.get_running_loop().create_task(store.watch(settings.watch_interval_seconds)))

    async def _shutdown() -> None:
        for task in background:
            task.cancel()
        listener.stop()
        await overlay.drain()
        overlay.teardown()

    loop_thread.run_sync(_start())
    _LOGGER.debug("Overlay for %s loaded in state %s", hostname, overlay.state.value)
    exit_code = app.exec()
    try:
        loop_thread.run_sync(_shutdown())
    finally:
        loop_thread.stop()
    _LOGGER.info("Note overlay exiting with code %s", exit_code)
    return int(exit_code)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
