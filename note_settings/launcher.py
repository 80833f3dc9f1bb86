"""Entry point for the settings window."""
from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Callable, Optional

from PyQt6.QtWidgets import QApplication

from note_overlay.config import load_settings
from note_overlay.logging_utils import configure_logging
from note_overlay.loop_thread import EventLoopThread
from note_settings.controller import SettingsController
from note_settings.panel import SettingsPanel
from note_store.merger import RecordMerger
from note_store.store import JsonNoteStore

_LOGGER = logging.getLogger("SiteNotes.Settings")


def _loop_after(loop_thread: EventLoopThread) -> Callable[[int, Callable[[], None]], object]:
    def _after(delay_ms: int, callback: Callable[[], None]) -> object:
        loop = loop_thread.loop
        if loop is None:
            raise RuntimeError("core loop is not running")
        return loop.call_later(delay_ms / 1000.0, callback)

    return _after


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Edit the site note for a page")
    parser.add_argument("url", help="URL of the page whose note to edit")
    parser.add_argument("--store", help="Path to the notes JSON store")
    parser.add_argument("--config", help="Path to site_notes_settings.json")
    args = parser.parse_args(argv)

    settings = load_settings(Path(args.config).expanduser() if args.config else None)
    configure_logging("site-notes-settings.log", debug_enabled=settings.debug, retention=settings.log_retention)
    store_path = Path(args.store).expanduser() if args.store else settings.store_path
    _LOGGER.info("Starting settings surface (pid=%s, store=%s)", os.getpid(), store_path)

    app = QApplication(sys.argv)
    loop_thread = EventLoopThread("SiteNotes-Settings")
    loop_thread.start()

    store = JsonNoteStore(store_path)
    panel = SettingsPanel(loop_thread)
    controller = SettingsController(
        store,
        panel,
        after=_loop_after(loop_thread),
        after_cancel=lambda handle: handle.cancel(),  # type: ignore[attr-defined]
        debounce_ms=settings.settings_debounce_ms,
        merger=RecordMerger(
            store,
            write_attempts=settings.write_attempts,
            retry_backoff_seconds=settings.retry_backoff_seconds,
        ),
    )
    panel.controller = controller
    panel.resize(360, 480)
    panel.show()
    loop_thread.submit(controller.open(args.url), label="open settings")

    exit_code = app.exec()

    async def _shutdown() -> None:
        await controller.drain()
        await controller.flush()

    try:
        loop_thread.run_sync(_shutdown())
    finally:
        loop_thread.stop()
    _LOGGER.info("Settings surface exiting with code %s", exit_code)
    return int(exit_code)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
