"""Read-modify-write helper so partial local mutations never clobber remote fields."""
from __future__ import annotations

import asyncio
import copy
import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Deque, Dict, Mapping, Optional, Protocol

from note_store.record import NoteRecord
from note_store.store import StorageError

_LOGGER = logging.getLogger("SiteNotes.Store.Merger")

_ECHO_HISTORY = 16
_MAX_BACKOFF_SECONDS = 10.0


class NoteStorage(Protocol):
    async def read(self, hostname: str) -> Optional[Dict[str, Any]]: ...

    async def write(self, hostname: str, value: Dict[str, Any]) -> None: ...


@dataclass(frozen=True)
class CommitResult:
    ok: bool
    value: Optional[Dict[str, Any]] = None
    attempts: int = 0
    error: Optional[Exception] = None

    @property
    def record(self) -> Optional[NoteRecord]:
        return NoteRecord.from_mapping(self.value) if self.value is not None else None


class RecordMerger:
    """Merges a set of changed fields into the latest stored record and writes it.

    The read and the write are separate storage calls, so a concurrent writer
    landing between them can still be overwritten for the fields in the
    mutation. Fields outside the mutation always keep the latest stored value.
    """

    def __init__(
        self,
        store: NoteStorage,
        *,
        write_attempts: int = 3,
        retry_backoff_seconds: float = 0.25,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        on_failure: Optional[Callable[[str, Exception], None]] = None,
    ) -> None:
        self._store = store
        self._write_attempts = max(1, int(write_attempts))
        self._retry_backoff = max(0.0, float(retry_backoff_seconds))
        self._sleep = sleep
        self._on_failure = on_failure
        self._echoes: Deque[tuple[str, Dict[str, Any]]] = deque(maxlen=_ECHO_HISTORY)

    async def commit(
        self,
        hostname: str,
        mutation: Mapping[str, Any],
        *,
        seed: Optional[Mapping[str, Any]] = None,
    ) -> CommitResult:
        """Write ``{**latest, **mutation}``; ``seed`` fills fields missing from both."""
        changes = copy.deepcopy(dict(mutation))
        backoff = self._retry_backoff
        last_error: Optional[Exception] = None
        for attempt in range(1, self._write_attempts + 1):
            merged: Optional[Dict[str, Any]] = None
            try:
                latest = await self._store.read(hostname) or {}
                merged = {**latest, **changes}
                for key, value in (seed or {}).items():
                    merged.setdefault(key, copy.deepcopy(value))
                self._echoes.append((hostname, copy.deepcopy(merged)))
                await self._store.write(hostname, merged)
            except StorageError as exc:
                last_error = exc
                if merged is not None:
                    self._forget_echo(hostname, merged)
                _LOGGER.debug(
                    "Commit for %s failed (attempt %d/%d): %s", hostname, attempt, self._write_attempts, exc
                )
                if attempt < self._write_attempts:
                    await self._sleep(backoff)
                    backoff = min(backoff * 1.5, _MAX_BACKOFF_SECONDS)
                continue
            _LOGGER.debug("Committed %s for %s", sorted(changes), hostname)
            return CommitResult(ok=True, value=merged, attempts=attempt)

        _LOGGER.warning(
            "Giving up on commit of %s for %s after %d attempts: %s",
            sorted(changes),
            hostname,
            self._write_attempts,
            last_error,
        )
        if self._on_failure is not None and last_error is not None:
            self._on_failure(hostname, last_error)
        return CommitResult(ok=False, attempts=self._write_attempts, error=last_error)

    def consume_echo(self, hostname: str, value: Optional[Mapping[str, Any]]) -> bool:
        """Return True (and forget it) when ``value`` is one of our own recent writes."""
        if value is None:
            return False
        entries = list(self._echoes)
        for index, (key, written) in enumerate(entries):
            if key != hostname or written != value:
                continue
            # Older writes for this key were superseded by the echoed one.
            kept = [entry for position, entry in enumerate(entries) if position > index or entry[0] != hostname]
            self._echoes.clear()
            self._echoes.extend(kept)
            return True
        return False

    def _forget_echo(self, hostname: str, value: Mapping[str, Any]) -> None:
        for entry in reversed(self._echoes):
            if entry[0] == hostname and entry[1] == value:
                self._echoes.remove(entry)
                return
