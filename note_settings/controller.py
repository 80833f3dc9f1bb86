"""Settings surface logic: form state, debounced saves and theme presets.

The controller runs on the core event loop. Timers are injected as
``after(delay_ms, callback) -> handle`` / ``after_cancel(handle)`` so the
same code runs against ``loop.call_later`` in the app and fake timers in
tests.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Set

from note_store.merger import CommitResult, RecordMerger
from note_store.record import DEFAULT_POSITION, NoteRecord
from note_store.store import JsonNoteStore, StorageError

from note_overlay.themes import CUSTOM_THEME, DEFAULT_THEME, PRESETS, adjust_color, border_for_theme
from note_settings.hostname import InvalidSourceUrl, hostname_from_url

_LOGGER = logging.getLogger("SiteNotes.Settings")

DEFAULT_DEBOUNCE_MS = 750
INVALID_DOMAIN_LABEL = "Invalid Domain"
STATUS_TYPING = "Typing..."
STATUS_SAVING = "Saving..."
STATUS_SAVED = "Saved"
STATUS_UNSAVED = "Unsaved"
STATUS_LOAD_FAILED = "Could not load note"

AfterFn = Callable[[int, Callable[[], None]], object]
AfterCancelFn = Callable[[object], None]
SpawnFn = Callable[[Awaitable[Any]], Any]


@dataclass(frozen=True)
class SettingsForm:
    text: str = ""
    visible: bool = True
    theme: str = DEFAULT_THEME
    bg: str = PRESETS[DEFAULT_THEME].bg
    text_color: str = PRESETS[DEFAULT_THEME].text
    opacity: float = PRESETS[DEFAULT_THEME].opacity

    @classmethod
    def from_record(cls, record: NoteRecord) -> "SettingsForm":
        form = cls(text=record.text, visible=record.visible)
        style = record.style
        if not style:
            return form.with_preset(DEFAULT_THEME)
        theme = str(style.get("type") or DEFAULT_THEME)
        preset = PRESETS.get(theme, PRESETS[DEFAULT_THEME])
        try:
            opacity = float(style.get("opacity", preset.opacity))
        except (TypeError, ValueError):
            opacity = preset.opacity
        return replace(
            form,
            theme=theme,
            bg=str(style.get("bg") or preset.bg),
            text_color=str(style.get("text") or preset.text),
            opacity=opacity,
        )

    def with_preset(self, theme: str) -> "SettingsForm":
        preset = PRESETS.get(theme)
        if preset is None:
            return replace(self, theme=theme)
        return replace(self, theme=theme, bg=preset.bg, text_color=preset.text, opacity=preset.opacity)

    def style(self) -> Dict[str, Any]:
        return {
            "type": self.theme,
            "bg": self.bg,
            "text": self.text_color,
            "opacity": self.opacity,
            "border": border_for_theme(self.theme),
        }


class SettingsView(Protocol):
    def show_domain(self, label: str) -> None: ...

    def set_input_enabled(self, enabled: bool) -> None: ...

    def show_form(self, form: SettingsForm) -> None: ...

    def show_char_count(self, count: int) -> None: ...

    def show_status(self, text: str, kind: str) -> None: ...

    def apply_palette(self, bg: str, text: str, secondary_bg: str) -> None: ...


def _spawn_on_running_loop(coro: Awaitable[Any]) -> "asyncio.Task[Any]":
    return asyncio.get_running_loop().create_task(coro)  # type: ignore[arg-type]


class SettingsController:
    """Two-way binding between the settings form and the stored note."""

    def __init__(
        self,
        store: JsonNoteStore,
        view: SettingsView,
        *,
        after: AfterFn,
        after_cancel: AfterCancelFn,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        merger: Optional[RecordMerger] = None,
        spawn: SpawnFn = _spawn_on_running_loop,
    ) -> None:
        self._store = store
        self._view = view
        self._after = after
        self._after_cancel = after_cancel
        self._debounce_ms = max(0, int(debounce_ms))
        self._merger = merger or RecordMerger(store)
        self._spawn = spawn
        self._hostname: Optional[str] = None
        self._form = SettingsForm()
        self._debounce_handle: Optional[object] = None
        self._dirty: Set[str] = set()
        self._tasks: Set[Any] = set()

    @property
    def hostname(self) -> Optional[str]:
        return self._hostname

    @property
    def form(self) -> SettingsForm:
        return self._form

    async def open(self, url: str) -> bool:
        try:
            hostname = hostname_from_url(url)
        except InvalidSourceUrl as exc:
            _LOGGER.info("Settings disabled for %r: %s", url, exc)
            self._hostname = None
            self._view.show_domain(INVALID_DOMAIN_LABEL)
            self._view.set_input_enabled(False)
            return False
        self._hostname = hostname
        self._view.show_domain(hostname)
        self._view.set_input_enabled(True)
        await self.load()
        return True

    async def load(self) -> None:
        if self._hostname is None:
            return
        try:
            data = await self._store.read(self._hostname)
        except StorageError as exc:
            _LOGGER.warning("Could not load note for %s: %s", self._hostname, exc)
            self._view.show_status(STATUS_LOAD_FAILED, "error")
            return
        self._form = SettingsForm.from_record(NoteRecord.from_mapping(data))
        self._dirty.clear()
        self._view.show_form(self._form)
        self._apply_palette()
        self._view.show_char_count(len(self._form.text))

    # Form events ----------------------------------------------------------

    def on_text_input(self, text: str) -> None:
        self._form = replace(self._form, text=text)
        self._dirty.add("text")
        self._view.show_char_count(len(text))
        self._view.show_status(STATUS_TYPING, "")
        self._cancel_debounce()
        self._debounce_handle = self._after(self._debounce_ms, self._debounce_fired)

    def set_visible(self, visible: bool) -> None:
        self._form = replace(self._form, visible=bool(visible))
        self._dirty.add("visible")
        self._save_now()

    def select_theme(self, theme: str) -> None:
        form = replace(self._form, theme=theme)
        if theme != CUSTOM_THEME:
            form = form.with_preset(theme)
        self._form = form
        self._dirty.add("style")
        self._view.show_form(form)
        self._apply_palette()
        self._save_now()

    def edit_colors(
        self,
        *,
        bg: Optional[str] = None,
        text_color: Optional[str] = None,
        opacity: Optional[float] = None,
    ) -> None:
        form = replace(self._form, theme=CUSTOM_THEME)
        if bg is not None:
            form = replace(form, bg=bg)
        if text_color is not None:
            form = replace(form, text_color=text_color)
        if opacity is not None:
            form = replace(form, opacity=max(0.0, min(1.0, float(opacity))))
        self._form = form
        self._dirty.add("style")
        self._view.show_form(form)
        self._apply_palette()
        self._save_now()

    async def delete(self) -> Optional[CommitResult]:
        """Reset the note: empty text, overlay visible. The caller confirms first."""
        self._cancel_debounce()
        self._form = replace(self._form, text="", visible=True)
        self._dirty.update(("text", "visible"))
        self._view.show_form(self._form)
        self._view.show_char_count(0)
        return await self.save()

    # Persistence ----------------------------------------------------------

    async def save(self) -> Optional[CommitResult]:
        """Persist the fields edited since the last save.

        Untouched fields are left to the merger so edits made by the overlay
        after this form loaded survive. The seed only matters for a new note.
        """
        if self._hostname is None or not self._dirty:
            return None
        form = self._form
        fields = {"text": form.text, "visible": form.visible, "style": form.style()}
        dirty, self._dirty = self._dirty, set()
        self._view.show_status(STATUS_SAVING, "saving")
        result = await self._merger.commit(
            self._hostname,
            {name: fields[name] for name in sorted(dirty)},
            seed={"position": dict(DEFAULT_POSITION), "visible": form.visible, "style": form.style()},
        )
        if result.ok:
            self._view.show_status(STATUS_SAVED, "saved")
        else:
            self._dirty |= dirty
            self._view.show_status(STATUS_UNSAVED, "error")
        return result

    async def drain(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def flush(self) -> None:
        """Save a pending debounced edit immediately (used on shutdown)."""
        if self._debounce_handle is None:
            return
        self._cancel_debounce()
        await self.save()

    def _debounce_fired(self) -> None:
        self._debounce_handle = None
        self._track(self._spawn(self.save()))

    def _save_now(self) -> None:
        self._cancel_debounce()
        self._track(self._spawn(self.save()))

    def _track(self, task: Any) -> None:
        if not isinstance(task, asyncio.Future):
            return
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _cancel_debounce(self) -> None:
        handle, self._debounce_handle = self._debounce_handle, None
        if handle is None:
            return
        try:
            self._after_cancel(handle)
        except Exception as exc:
            _LOGGER.debug("Failed to cancel debounce timer: %s", exc)

    def _apply_palette(self) -> None:
        form = self._form
        self._view.apply_palette(form.bg, form.text_color, adjust_color(form.bg, 20))
