"""JSON-file backed key/value store for note records with a change feed."""
from __future__ import annotations

import asyncio
import copy
import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

STORE_FILENAME = "site_notes.json"

_LOGGER = logging.getLogger("SiteNotes.Store")

ChangeListener = Callable[[Optional[Dict[str, Any]], Optional[Dict[str, Any]]], None]


class StorageError(RuntimeError):
    """Raised when the backing file cannot be read or written."""


class JsonNoteStore:
    """Asynchronous get/set by hostname key plus change notifications.

    Notifications are scheduled on the running loop after a write lands and
    reach every subscriber of the key, the writer included. Writes made by
    other processes are picked up by ``poll_external_changes``/``watch``.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._write_lock = asyncio.Lock()
        self._listeners: Dict[str, List[ChangeListener]] = {}
        self._known: Optional[Dict[str, Dict[str, Any]]] = None
        self._last_mtime_ns: Optional[int] = None

    @property
    def path(self) -> Path:
        return self._path

    async def read(self, hostname: str) -> Optional[Dict[str, Any]]:
        data = await asyncio.to_thread(self._load_all)
        value = data.get(hostname)
        return copy.deepcopy(value) if isinstance(value, dict) else None

    async def write(self, hostname: str, value: Dict[str, Any]) -> None:
        new_value = copy.deepcopy(dict(value))
        async with self._write_lock:
            data = await asyncio.to_thread(self._load_all)
            old_value = data.get(hostname)
            data[hostname] = new_value
            await asyncio.to_thread(self._write_all, data)
            self._remember(hostname, data, new_value)
        _LOGGER.debug("Stored note for %s (keys=%s)", hostname, sorted(new_value))
        self._schedule_notify(hostname, old_value, new_value)

    async def remove(self, hostname: str) -> None:
        async with self._write_lock:
            data = await asyncio.to_thread(self._load_all)
            if hostname not in data:
                return
            old_value = data.pop(hostname)
            await asyncio.to_thread(self._write_all, data)
            self._remember(hostname, data, None)
        _LOGGER.debug("Removed note for %s", hostname)
        self._schedule_notify(hostname, old_value, None)

    def subscribe(self, hostname: str, listener: ChangeListener) -> Callable[[], None]:
        """Register ``listener(old, new)``; returns the matching unsubscribe callable."""
        self._listeners.setdefault(hostname, []).append(listener)

        def _unsubscribe() -> None:
            listeners = self._listeners.get(hostname)
            if not listeners or listener not in listeners:
                return
            listeners.remove(listener)
            if not listeners:
                self._listeners.pop(hostname, None)

        return _unsubscribe

    async def poll_external_changes(self) -> List[str]:
        """Diff the backing file against the last known contents and notify."""
        mtime_ns = await asyncio.to_thread(self._stat_mtime_ns)
        if self._known is not None and mtime_ns == self._last_mtime_ns:
            return []
        data = await asyncio.to_thread(self._load_all)
        self._last_mtime_ns = mtime_ns
        if self._known is None:
            self._known = copy.deepcopy(data)
            return []
        previous = self._known
        self._known = copy.deepcopy(data)
        changed: List[str] = []
        for hostname in sorted(set(previous) | set(data)):
            old_value = previous.get(hostname)
            new_value = data.get(hostname)
            if old_value == new_value:
                continue
            changed.append(hostname)
            self._schedule_notify(hostname, old_value, new_value)
        if changed:
            _LOGGER.debug("External store change detected for %s", ", ".join(changed))
        return changed

    async def watch(self, interval: float = 1.0) -> None:
        """Poll for external writes until cancelled."""
        await self.poll_external_changes()
        while True:
            await asyncio.sleep(interval)
            try:
                await self.poll_external_changes()
            except StorageError as exc:
                _LOGGER.warning("Failed to poll note store %s: %s", self._path, exc)

    # Internals ------------------------------------------------------------

    def _remember(self, hostname: str, data: Dict[str, Any], value: Optional[Dict[str, Any]]) -> None:
        if self._known is None:
            self._known = copy.deepcopy(data)
        elif value is None:
            self._known.pop(hostname, None)
        else:
            self._known[hostname] = copy.deepcopy(value)
        self._last_mtime_ns = self._stat_mtime_ns()

    def _schedule_notify(
        self,
        hostname: str,
        old_value: Optional[Dict[str, Any]],
        new_value: Optional[Dict[str, Any]],
    ) -> None:
        loop = asyncio.get_running_loop()
        loop.call_soon(self._notify, hostname, copy.deepcopy(old_value), copy.deepcopy(new_value))

    def _notify(
        self,
        hostname: str,
        old_value: Optional[Dict[str, Any]],
        new_value: Optional[Dict[str, Any]],
    ) -> None:
        for listener in list(self._listeners.get(hostname, ())):
            try:
                listener(copy.deepcopy(old_value), copy.deepcopy(new_value))
            except Exception as exc:
                _LOGGER.warning("Change listener for %s failed: %s", hostname, exc, exc_info=exc)

    def _stat_mtime_ns(self) -> Optional[int]:
        try:
            return self._path.stat().st_mtime_ns
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageError(f"Cannot stat {self._path}: {exc}") from exc

    def _load_all(self) -> Dict[str, Any]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            raise StorageError(f"Cannot read {self._path}: {exc}") from exc
        try:
            data = json.loads(raw) if raw.strip() else {}
        except json.JSONDecodeError as exc:
            _LOGGER.warning("Note store %s is not valid JSON; treating as empty: %s", self._path, exc)
            return {}
        if not isinstance(data, dict):
            _LOGGER.warning("Note store %s does not hold an object; treating as empty", self._path)
            return {}
        return data

    def _write_all(self, data: Dict[str, Any]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
            tmp_path.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
            tmp_path.replace(self._path)
        except OSError as exc:
            raise StorageError(f"Cannot write {self._path}: {exc}") from exc


def resolve_store_path(root: Optional[Path] = None) -> Path:
    """Return the store path rooted at the given folder."""

    base = root if root is not None else Path.home() / ".local" / "share" / "site-notes"
    return base / STORE_FILENAME
