"""Overlay state machine: local mirror of the note record plus its view state."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import fields
from typing import Any, Callable, Dict, Mapping, Optional, Set

from note_store.merger import CommitResult, RecordMerger
from note_store.record import NoteRecord, Position, Size
from note_store.store import JsonNoteStore, StorageError

from note_overlay.rendering import render_note_html
from note_overlay.states import InvalidTransition, OverlayState, can_transition
from note_overlay.surface import OverlaySurface, SurfaceView

_LOGGER = logging.getLogger("SiteNotes.Overlay")

SurfaceFactory = Callable[[], OverlaySurface]

_RECORD_FIELDS = tuple(field.name for field in fields(NoteRecord))


class NoteOverlay:
    """Sole mutator of the overlay's local state for one hostname.

    User actions update the mirror and the surface first, then persist only
    the fields they changed through the record merger. Remote updates are
    folded in by ``apply_remote``.
    """

    def __init__(
        self,
        hostname: str,
        store: JsonNoteStore,
        surface_factory: SurfaceFactory,
        *,
        merger: Optional[RecordMerger] = None,
    ) -> None:
        self._hostname = hostname
        self._store = store
        self._surface_factory = surface_factory
        self._merger = merger or RecordMerger(store)
        self._surface: Optional[OverlaySurface] = None
        self._record = NoteRecord()
        self._state = OverlayState.UNINSTANTIATED
        self._edit_seed: Optional[str] = None
        self._remote_text: Optional[str] = None
        self._unsaved = False
        self._background: Set["asyncio.Task[CommitResult]"] = set()

    @property
    def hostname(self) -> str:
        return self._hostname

    @property
    def state(self) -> OverlayState:
        return self._state

    @property
    def record(self) -> NoteRecord:
        return self._record

    @property
    def merger(self) -> RecordMerger:
        return self._merger

    @property
    def unsaved(self) -> bool:
        return self._unsaved

    # Lifecycle ------------------------------------------------------------

    async def load(self) -> OverlayState:
        if self._state.instantiated:
            return self._state
        try:
            data = await self._store.read(self._hostname)
        except StorageError as exc:
            _LOGGER.warning("Could not read note for %s: %s", self._hostname, exc)
            return self._state
        record = NoteRecord.from_mapping(data)
        self._record = record
        if data is None or not record.has_text:
            _LOGGER.debug("No note stored for %s; overlay not created", self._hostname)
            return self._state
        self._construct(self._shown_state() if record.visible else OverlayState.HIDDEN, "load")
        return self._state

    def teardown(self) -> None:
        self._destroy("teardown")
        for task in list(self._background):
            task.cancel()

    async def drain(self) -> None:
        """Wait for commits started outside an awaited action."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # User actions ---------------------------------------------------------

    async def toggle_minimize(self) -> CommitResult:
        if self._state not in (OverlayState.EXPANDED, OverlayState.MINIMIZED):
            target = OverlayState.EXPANDED if self._record.minimized else OverlayState.MINIMIZED
            raise InvalidTransition(self._state, target, "toggle_minimize")
        minimized = not self._record.minimized
        self._record = self._record.with_changes(minimized=minimized)
        self._transition(self._shown_state(), "toggle_minimize")
        self._render()
        return await self._commit({"minimized": minimized})

    def begin_edit(self) -> None:
        if self._state not in (OverlayState.EXPANDED, OverlayState.MINIMIZED):
            raise InvalidTransition(self._state, OverlayState.EDITING, "begin_edit")
        self._edit_seed = self._record.text
        self._remote_text = None
        self._transition(OverlayState.EDITING, "begin_edit")
        self._render()

    async def commit_edit(self, text: str) -> Optional[CommitResult]:
        if self._state is not OverlayState.EDITING:
            raise InvalidTransition(self._state, self._shown_state(), "commit_edit")
        mutation = self._finish_edit(text)
        self._transition(self._shown_state(), "commit_edit")
        self._render()
        if mutation is None:
            return None
        return await self._commit(mutation)

    async def commit_position(self, position: Position) -> Optional[CommitResult]:
        if not self._state.displayed:
            _LOGGER.debug("Ignoring position commit while %s", self._state.value)
            return None
        self._record = self._record.with_changes(position=position)
        self._render()
        return await self._commit({"position": position.to_dict()})

    async def commit_size(self, size: Size) -> Optional[CommitResult]:
        if not self._state.displayed or self._record.minimized or size == self._record.size:
            return None
        self._record = self._record.with_changes(size=size)
        self._render()
        return await self._commit({"size": size.to_dict()})

    # Remote updates -------------------------------------------------------

    def apply_remote(self, value: Optional[Mapping[str, Any]]) -> None:
        if value is None:
            self._destroy("remote removed")
            return
        incoming = NoteRecord.from_mapping(value)
        if self._state is OverlayState.EDITING:
            # The edit buffer owns the text until blur.
            if incoming.text != self._record.text:
                self._remote_text = incoming.text
            incoming = incoming.with_changes(text=self._record.text)
        self._record = incoming

        if not self._state.instantiated:
            if incoming.visible and incoming.has_text:
                self._construct(self._shown_state(), "remote update")
            return

        if not incoming.visible:
            if self._state is OverlayState.EDITING:
                self._flush_edit_for_hide()
            self._transition(OverlayState.HIDDEN, "remote update")
        elif self._state is not OverlayState.EDITING:
            self._transition(self._shown_state(), "remote update")
        self._render()

    # Internals ------------------------------------------------------------

    def view(self) -> SurfaceView:
        editing = self._state is OverlayState.EDITING
        record = self._record
        return SurfaceView(
            state=self._state,
            position=record.position,
            size=None if record.minimized else record.size,
            content_html=None if editing else render_note_html(record.text),
            edit_text=self._edit_seed if editing else None,
            style=record.style,
            unsaved=self._unsaved,
        )

    def _shown_state(self) -> OverlayState:
        return OverlayState.MINIMIZED if self._record.minimized else OverlayState.EXPANDED

    def _transition(self, target: OverlayState, action: str) -> None:
        if target is self._state:
            return
        if not can_transition(self._state, target):
            raise InvalidTransition(self._state, target, action)
        _LOGGER.debug("Overlay %s: %s -> %s (%s)", self._hostname, self._state.value, target.value, action)
        self._state = target

    def _construct(self, target: OverlayState, action: str) -> None:
        self._transition(target, action)
        self._surface = self._surface_factory()
        self._surface.mount()
        self._render()

    def _destroy(self, reason: str) -> None:
        if self._state is OverlayState.EDITING:
            _LOGGER.warning("Discarding unsaved edit for %s (%s)", self._hostname, reason)
        surface, self._surface = self._surface, None
        if surface is not None:
            surface.unmount()
        self._edit_seed = None
        self._remote_text = None
        self._record = NoteRecord()
        if self._state.instantiated:
            self._transition(OverlayState.UNINSTANTIATED, reason)

    def _render(self) -> None:
        if self._surface is None:
            return
        self._surface.apply(self.view())

    def _finish_edit(self, text: str) -> Optional[Dict[str, Any]]:
        seed, remote = self._edit_seed, self._remote_text
        self._edit_seed = None
        self._remote_text = None
        if text == seed:
            if remote is not None:
                self._record = self._record.with_changes(text=remote)
            return None
        if remote is not None and remote != text:
            _LOGGER.warning("Local edit for %s overwrites a text change made elsewhere", self._hostname)
        self._record = self._record.with_changes(text=text)
        return {"text": text}

    def _flush_edit_for_hide(self) -> None:
        buffer = self._surface.edit_buffer() if self._surface is not None else None
        mutation = self._finish_edit(buffer if buffer is not None else self._record.text)
        if mutation is None:
            return
        task = asyncio.get_running_loop().create_task(self._commit(mutation))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _commit(self, mutation: Mapping[str, Any]) -> CommitResult:
        before = self._record
        result = await self._merger.commit(self._hostname, mutation)
        if result.ok == self._unsaved:
            self._unsaved = not result.ok
            self._render()
        if result.ok:
            self._fold_merged(before, mutation, result.record)
        return result

    def _fold_merged(self, before: NoteRecord, mutation: Mapping[str, Any], merged: Optional[NoteRecord]) -> None:
        """Adopt fields another writer stored since the last poll.

        The echo of this write is suppressed and the poll baseline moves past
        it, so the merged value is the only place those fields show up.
        """
        if merged is None or not self._state.instantiated:
            return
        current = self._record
        changes = {
            name: getattr(merged, name)
            for name in _RECORD_FIELDS
            if name not in mutation
            and getattr(current, name) == getattr(before, name)
            and getattr(merged, name) != getattr(current, name)
        }
        if not changes:
            return
        _LOGGER.debug("Folding %s written elsewhere into overlay %s", sorted(changes), self._hostname)
        self.apply_remote(current.with_changes(**changes).to_dict())
