"""Observable in-memory state for notesync."""

from notesync.store.note_store import NoteStore
from notesync.store.observable import (
    ImmediateDispatcher,
    Observable,
    SerialDispatcher,
    Subscription,
)

__all__ = [
    "ImmediateDispatcher",
    "NoteStore",
    "Observable",
    "SerialDispatcher",
    "Subscription",
]
