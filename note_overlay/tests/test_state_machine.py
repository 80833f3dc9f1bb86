from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict

import pytest

from note_store.merger import RecordMerger
from note_store.record import Position, Size
from note_store.store import JsonNoteStore, StorageError

from note_overlay.states import InvalidTransition, OverlayState
from note_overlay.state_machine import NoteOverlay

HOST = "example.com"


async def _noop_sleep(_delay: float) -> None:
    return None


class FailingWrites(JsonNoteStore):
    def __init__(self, path, failures: int) -> None:
        super().__init__(path)
        self.failures = failures

    async def write(self, hostname: str, value: Dict[str, Any]) -> None:
        if self.failures > 0:
            self.failures -= 1
            raise StorageError("disk full")
        await super().write(hostname, value)


async def _seeded(tmp_path, surfaces, record: Dict[str, Any], store=None) -> NoteOverlay:
    store = store or JsonNoteStore(tmp_path / "notes.json")
    await store.write(HOST, record)
    overlay = NoteOverlay(HOST, store, surfaces, merger=RecordMerger(store, sleep=_noop_sleep))
    await overlay.load()
    return overlay


def test_load_without_record_stays_uninstantiated(tmp_path, surfaces) -> None:
    async def _run() -> None:
        overlay = NoteOverlay(HOST, JsonNoteStore(tmp_path / "notes.json"), surfaces)
        assert await overlay.load() is OverlayState.UNINSTANTIATED
        assert surfaces.created == []

    asyncio.run(_run())


def test_load_with_blank_text_stays_uninstantiated(tmp_path, surfaces) -> None:
    async def _run() -> None:
        overlay = await _seeded(tmp_path, surfaces, {"text": "   ", "visible": True})
        assert overlay.state is OverlayState.UNINSTANTIATED
        assert surfaces.created == []

    asyncio.run(_run())


def test_load_with_text_mounts_expanded_surface(tmp_path, surfaces) -> None:
    async def _run() -> None:
        overlay = await _seeded(tmp_path, surfaces, {"text": "hello <b>", "visible": True})
        assert overlay.state is OverlayState.EXPANDED
        surface = surfaces.current
        assert surface.mounted
        view = surface.last_view
        assert view.visible
        assert view.content_html == "hello &lt;b&gt;"
        assert view.position == Position(top="20px", right="20px")
        assert view.size == Size("300px", "auto")

    asyncio.run(_run())


def test_load_hidden_record_constructs_hidden_surface(tmp_path, surfaces) -> None:
    async def _run() -> None:
        overlay = await _seeded(tmp_path, surfaces, {"text": "hello", "visible": False})
        assert overlay.state is OverlayState.HIDDEN
        assert surfaces.current.mounted
        assert surfaces.current.last_view.visible is False

    asyncio.run(_run())


def test_load_minimized_record(tmp_path, surfaces) -> None:
    async def _run() -> None:
        overlay = await _seeded(tmp_path, surfaces, {"text": "hello", "minimized": True})
        assert overlay.state is OverlayState.MINIMIZED
        assert surfaces.current.last_view.minimized

    asyncio.run(_run())


def test_toggle_minimize_twice_restores_stored_size(tmp_path, surfaces) -> None:
    async def _run() -> None:
        overlay = await _seeded(
            tmp_path,
            surfaces,
            {"text": "hello", "size": {"width": "420px", "height": "260px"}},
        )
        store = JsonNoteStore(tmp_path / "notes.json")

        result = await overlay.toggle_minimize()
        assert result.ok
        assert overlay.state is OverlayState.MINIMIZED
        assert surfaces.current.last_view.size is None
        assert (await store.read(HOST))["minimized"] is True

        await overlay.toggle_minimize()
        assert overlay.state is OverlayState.EXPANDED
        assert surfaces.current.last_view.size == Size("420px", "260px")
        stored = await store.read(HOST)
        assert stored["minimized"] is False
        assert stored["size"] == {"width": "420px", "height": "260px"}

    asyncio.run(_run())


def test_toggle_minimize_keeps_text_changed_elsewhere(tmp_path, surfaces) -> None:
    async def _run() -> None:
        store = JsonNoteStore(tmp_path / "notes.json")
        overlay = await _seeded(tmp_path, surfaces, {"text": "old"}, store=store)
        # Another context rewrote the text; this overlay has not seen it yet.
        await store.write(HOST, {"text": "new text", "visible": True})

        await overlay.toggle_minimize()
        stored = await store.read(HOST)
        assert stored["text"] == "new text"
        assert stored["minimized"] is True
        assert overlay.record.text == "new text"
        assert surfaces.current.last_view.content_html == "new text"

    asyncio.run(_run())


def test_edit_and_commit_persists_text(tmp_path, surfaces) -> None:
    async def _run() -> None:
        overlay = await _seeded(tmp_path, surfaces, {"text": "draft"})
        overlay.begin_edit()
        assert overlay.state is OverlayState.EDITING
        view = surfaces.current.last_view
        assert view.content_html is None
        assert view.edit_text == "draft"

        result = await overlay.commit_edit("final https://example.com")
        assert result is not None and result.ok
        assert overlay.state is OverlayState.EXPANDED
        assert "<a href=\"https://example.com\"" in surfaces.current.last_view.content_html
        stored = await JsonNoteStore(tmp_path / "notes.json").read(HOST)
        assert stored["text"] == "final https://example.com"

    asyncio.run(_run())


def test_unchanged_edit_writes_nothing(tmp_path, surfaces) -> None:
    async def _run() -> None:
        overlay = await _seeded(tmp_path, surfaces, {"text": "same"})
        overlay.begin_edit()
        assert await overlay.commit_edit("same") is None
        assert overlay.state is OverlayState.EXPANDED

    asyncio.run(_run())


def test_edit_from_minimized_returns_to_minimized(tmp_path, surfaces) -> None:
    async def _run() -> None:
        overlay = await _seeded(tmp_path, surfaces, {"text": "x", "minimized": True})
        overlay.begin_edit()
        await overlay.commit_edit("y")
        assert overlay.state is OverlayState.MINIMIZED

    asyncio.run(_run())


def test_remote_update_while_editing_keeps_buffer(tmp_path, surfaces) -> None:
    async def _run() -> None:
        overlay = await _seeded(tmp_path, surfaces, {"text": "seed"})
        overlay.begin_edit()
        overlay.apply_remote({"text": "remote", "visible": True, "minimized": True})

        assert overlay.state is OverlayState.EDITING
        view = surfaces.current.last_view
        assert view.content_html is None
        assert view.edit_text == "seed"
        assert view.minimized
        assert overlay.record.text == "seed"

    asyncio.run(_run())


def test_untouched_buffer_adopts_remote_text(tmp_path, surfaces) -> None:
    async def _run() -> None:
        overlay = await _seeded(tmp_path, surfaces, {"text": "seed"})
        overlay.begin_edit()
        overlay.apply_remote({"text": "remote", "visible": True})

        assert await overlay.commit_edit("seed") is None
        assert overlay.record.text == "remote"
        assert surfaces.current.last_view.content_html == "remote"

    asyncio.run(_run())


def test_changed_buffer_overwrites_remote_text_with_warning(tmp_path, surfaces, caplog) -> None:
    async def _run() -> None:
        store = JsonNoteStore(tmp_path / "notes.json")
        overlay = await _seeded(tmp_path, surfaces, {"text": "seed"}, store=store)
        overlay.begin_edit()
        await store.write(HOST, {"text": "remote", "visible": True})
        overlay.apply_remote({"text": "remote", "visible": True})

        with caplog.at_level(logging.WARNING, logger="SiteNotes.Overlay"):
            result = await overlay.commit_edit("mine")
        assert result is not None and result.ok
        assert (await store.read(HOST))["text"] == "mine"
        assert any("overwrites" in record.getMessage() for record in caplog.records)

    asyncio.run(_run())


def test_remote_hide_while_editing_commits_buffer(tmp_path, surfaces) -> None:
    async def _run() -> None:
        store = JsonNoteStore(tmp_path / "notes.json")
        overlay = await _seeded(tmp_path, surfaces, {"text": "seed"}, store=store)
        overlay.begin_edit()
        surfaces.current.buffer = "typed before hide"

        overlay.apply_remote({"text": "seed", "visible": False})
        assert overlay.state is OverlayState.HIDDEN
        assert surfaces.current.last_view.visible is False
        await overlay.drain()

        stored = await store.read(HOST)
        assert stored["text"] == "typed before hide"

    asyncio.run(_run())


def test_remote_visibility_toggles_reuse_surface(tmp_path, surfaces) -> None:
    async def _run() -> None:
        overlay = await _seeded(tmp_path, surfaces, {"text": "hello"})
        overlay.apply_remote({"text": "hello", "visible": False})
        assert overlay.state is OverlayState.HIDDEN
        overlay.apply_remote({"text": "hello", "visible": True})
        assert overlay.state is OverlayState.EXPANDED
        assert len(surfaces.created) == 1
        assert surfaces.current.mount_count == 1

    asyncio.run(_run())


def test_remote_removal_destroys_and_later_update_rebuilds(tmp_path, surfaces) -> None:
    async def _run() -> None:
        overlay = await _seeded(tmp_path, surfaces, {"text": "hello"})
        first = surfaces.current

        overlay.apply_remote(None)
        assert overlay.state is OverlayState.UNINSTANTIATED
        assert first.mounted is False

        overlay.apply_remote({"visible": True, "text": "x"})
        assert overlay.state is OverlayState.EXPANDED
        assert len(surfaces.created) == 2
        assert surfaces.current.mounted
        assert surfaces.current.last_view.content_html == "x"

    asyncio.run(_run())


def test_remote_update_without_text_does_not_construct(tmp_path, surfaces) -> None:
    async def _run() -> None:
        overlay = NoteOverlay(HOST, JsonNoteStore(tmp_path / "notes.json"), surfaces)
        overlay.apply_remote({"visible": True, "text": ""})
        overlay.apply_remote({"visible": False, "text": "hidden"})
        assert overlay.state is OverlayState.UNINSTANTIATED
        assert surfaces.created == []

    asyncio.run(_run())


def test_applying_same_remote_value_twice_is_idempotent(tmp_path, surfaces) -> None:
    async def _run() -> None:
        overlay = await _seeded(tmp_path, surfaces, {"text": "hello"})
        value = {"text": "again", "visible": True, "minimized": True}
        overlay.apply_remote(value)
        first = surfaces.current.last_view
        state = overlay.state
        overlay.apply_remote(value)
        assert surfaces.current.last_view == first
        assert overlay.state is state

    asyncio.run(_run())


def test_invalid_actions_raise(tmp_path, surfaces) -> None:
    async def _run() -> None:
        overlay = NoteOverlay(HOST, JsonNoteStore(tmp_path / "notes.json"), surfaces)
        with pytest.raises(InvalidTransition):
            await overlay.toggle_minimize()
        with pytest.raises(InvalidTransition):
            overlay.begin_edit()
        with pytest.raises(InvalidTransition):
            await overlay.commit_edit("text")

        hidden = await _seeded(tmp_path, surfaces, {"text": "hello", "visible": False})
        with pytest.raises(InvalidTransition):
            hidden.begin_edit()
        with pytest.raises(InvalidTransition):
            await hidden.toggle_minimize()

    asyncio.run(_run())


def test_toggle_while_editing_is_rejected(tmp_path, surfaces) -> None:
    async def _run() -> None:
        overlay = await _seeded(tmp_path, surfaces, {"text": "hello"})
        overlay.begin_edit()
        with pytest.raises(InvalidTransition):
            await overlay.toggle_minimize()
        assert overlay.state is OverlayState.EDITING

    asyncio.run(_run())


def test_size_commit_rules(tmp_path, surfaces) -> None:
    async def _run() -> None:
        overlay = await _seeded(tmp_path, surfaces, {"text": "hello"})
        store = JsonNoteStore(tmp_path / "notes.json")

        assert await overlay.commit_size(Size("300px", "auto")) is None
        result = await overlay.commit_size(Size("500px", "300px"))
        assert result is not None and result.ok
        assert (await store.read(HOST))["size"] == {"width": "500px", "height": "300px"}

        await overlay.toggle_minimize()
        assert await overlay.commit_size(Size("160px", "32px")) is None
        assert (await store.read(HOST))["size"] == {"width": "500px", "height": "300px"}

    asyncio.run(_run())


def test_position_commit_ignored_when_hidden(tmp_path, surfaces) -> None:
    async def _run() -> None:
        overlay = await _seeded(tmp_path, surfaces, {"text": "hello", "visible": False})
        assert await overlay.commit_position(Position.top_left("1px", "2px")) is None

    asyncio.run(_run())


def test_failed_commit_marks_unsaved_until_next_success(tmp_path, surfaces) -> None:
    async def _run() -> None:
        store = FailingWrites(tmp_path / "notes.json", failures=0)
        await store.write(HOST, {"text": "hello"})
        overlay = NoteOverlay(
            HOST, store, surfaces, merger=RecordMerger(store, write_attempts=2, sleep=_noop_sleep)
        )
        await overlay.load()

        store.failures = 2
        result = await overlay.toggle_minimize()
        assert result.ok is False
        assert overlay.unsaved is True
        assert surfaces.current.last_view.unsaved is True
        # The local state keeps the user's change.
        assert overlay.state is OverlayState.MINIMIZED

        result = await overlay.toggle_minimize()
        assert result.ok
        assert overlay.unsaved is False
        assert surfaces.current.last_view.unsaved is False

    asyncio.run(_run())


def test_unreadable_store_leaves_overlay_uninstantiated(tmp_path, surfaces) -> None:
    async def _run() -> None:
        # A directory in place of the store file cannot be read.
        overlay = NoteOverlay(HOST, JsonNoteStore(tmp_path), surfaces)
        assert await overlay.load() is OverlayState.UNINSTANTIATED

    asyncio.run(_run())


def test_teardown_unmounts_surface(tmp_path, surfaces) -> None:
    async def _run() -> None:
        overlay = await _seeded(tmp_path, surfaces, {"text": "hello"})
        overlay.teardown()
        assert overlay.state is OverlayState.UNINSTANTIATED
        assert surfaces.current.unmount_count == 1

    asyncio.run(_run())
