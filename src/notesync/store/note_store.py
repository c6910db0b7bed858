"""In-memory store of the signed-in user's notes."""

import logging
import threading
from typing import Callable, Iterable, Optional

from notesync.exceptions import IndexOutOfRange, StoreInvariantViolation
from notesync.models.note import Note
from notesync.store.observable import Dispatcher, ImmediateDispatcher, Observable, Subscription

logger = logging.getLogger(__name__)

NotesObserver = Callable[[tuple[Note, ...]], None]
SignedInObserver = Callable[[bool], None]


class NoteStore:
    """Single source of truth for the notes list and the signed-in flag.

    Every mutation runs under one re-entrant lock and publishes a new
    immutable tuple, so observers always receive snapshots in the order the
    mutations were applied and index-based operations act on the snapshot
    observers last saw.

    Args:
        dispatcher: Where observers run; defaults to the mutating thread.
            Pass a ``SerialDispatcher`` to deliver on a single owner thread.
    """

    def __init__(self, dispatcher: Optional[Dispatcher] = None):
        self._lock = threading.RLock()
        dispatcher = dispatcher or ImmediateDispatcher()
        self._notes: Observable[tuple[Note, ...]] = Observable((), dispatcher, self._lock)
        self._signed_in: Observable[bool] = Observable(False, dispatcher, self._lock)

    # ==================== Queries ====================

    @property
    def notes(self) -> tuple[Note, ...]:
        """Current notes snapshot, in insertion order."""
        return self._notes.value

    @property
    def is_signed_in(self) -> bool:
        """Current signed-in flag."""
        return self._signed_in.value

    def __len__(self) -> int:
        return len(self._notes.value)

    def get_note(self, note_id: str) -> Optional[Note]:
        """Get a note by id."""
        for note in self._notes.value:
            if note.id == note_id:
                return note
        return None

    def index_of(self, note_id: str) -> Optional[int]:
        """Get the display position of a note, or None if it is not stored."""
        for index, note in enumerate(self._notes.value):
            if note.id == note_id:
                return index
        return None

    # ==================== Mutations ====================

    def add_note(self, note: Note) -> None:
        """Append a note to the end of the list.

        Raises:
            StoreInvariantViolation: If a note with the same id is already stored
        """
        with self._lock:
            if self.index_of(note.id) is not None:
                raise StoreInvariantViolation(f"Note {note.id} is already in the store")
            self._notes.set(self._notes.value + (note,))
            logger.debug("Added note %s (%d total)", note.id, len(self))

    def delete_note_at(self, index: int) -> Note:
        """Remove and return the note at a display position.

        Raises:
            IndexOutOfRange: If index is not in [0, len)
        """
        with self._lock:
            notes = self._notes.value
            if not 0 <= index < len(notes):
                raise IndexOutOfRange(index, len(notes))
            note = notes[index]
            self._notes.set(notes[:index] + notes[index + 1 :])
            logger.debug("Deleted note %s at %d", note.id, index)
            return note

    def remove_note(self, note_id: str) -> Optional[Note]:
        """Remove a note by id. Returns the removed note, or None if absent."""
        with self._lock:
            index = self.index_of(note_id)
            if index is None:
                return None
            return self.delete_note_at(index)

    def update_note(self, note_id: str, change: Callable[[Note], Note]) -> Optional[Note]:
        """Replace a note with ``change(note)``, keeping its position.

        Returns:
            The new note, or None if no note has this id

        Raises:
            StoreInvariantViolation: If ``change`` returns a note with another id
        """
        with self._lock:
            index = self.index_of(note_id)
            if index is None:
                return None

            notes = self._notes.value
            updated = change(notes[index])
            if updated.id != note_id:
                raise StoreInvariantViolation(
                    f"Note {note_id} cannot be replaced by note {updated.id}"
                )
            self._notes.set(notes[:index] + (updated,) + notes[index + 1 :])
            return updated

    def replace_notes(
        self, build: Callable[[tuple[Note, ...]], Iterable[Note]]
    ) -> tuple[Note, ...]:
        """Replace the whole list with ``build(current_notes)`` in one step.

        Observers receive only the final list.

        Raises:
            StoreInvariantViolation: If the new list repeats an id
        """
        with self._lock:
            notes = tuple(build(self._notes.value))
            if len({note.id for note in notes}) != len(notes):
                raise StoreInvariantViolation("Replacement notes contain duplicate ids")
            self._notes.set(notes)
            logger.debug("Notes replaced (%d total)", len(notes))
            return notes

    def reset_notes(self) -> None:
        """Remove every note (used when signing out)."""
        with self._lock:
            self._notes.set(())
            logger.debug("Notes reset")

    def set_signed_in(self, signed_in: bool) -> None:
        """Set the signed-in flag."""
        with self._lock:
            self._signed_in.set(bool(signed_in))
            logger.info("Signed-in state changed: %s", bool(signed_in))

    # ==================== Observers ====================

    def subscribe_to_notes(self, observer: NotesObserver) -> Subscription:
        """Observe the notes list. The current list is delivered immediately."""
        return self._notes.subscribe(observer)

    def subscribe_to_signed_in(self, observer: SignedInObserver) -> Subscription:
        """Observe the signed-in flag. The current flag is delivered immediately."""
        return self._signed_in.subscribe(observer)
