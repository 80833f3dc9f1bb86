"""Persistence for site notes: record model, JSON store and record merger."""

from note_store.merger import CommitResult, RecordMerger
from note_store.record import NoteRecord, Position, Size
from note_store.store import JsonNoteStore, StorageError

__all__ = [
    "CommitResult",
    "JsonNoteStore",
    "NoteRecord",
    "Position",
    "RecordMerger",
    "Size",
    "StorageError",
]
