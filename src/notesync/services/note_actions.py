"""User intents: add, delete, sign in and sign out."""

import logging
from concurrent.futures import Future
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from notesync.models.note import Note, new_id
from notesync.services.image_codec import load_image
from notesync.services.sync_gateway import SyncGateway, SyncResult
from notesync.store.note_store import NoteStore

logger = logging.getLogger(__name__)


@dataclass
class NoteSubmission:
    """A note added locally and the backend request it triggered."""

    note: Note
    note_future: "Future[SyncResult]"


@dataclass
class NoteDeletion:
    """A note removed locally and the backend request it triggered."""

    note: Note
    future: "Future[SyncResult]"


class NoteActions:
    """Entry points for everything a user can do with their notes.

    Each action updates the store first, so observers see the change at once,
    and then hands the matching request to the gateway.
    """

    def __init__(self, store: NoteStore, gateway: SyncGateway):
        self.store = store
        self.gateway = gateway

    def add_note(
        self,
        name: str,
        description: str = "",
        image_path: Optional[Union[str, Path]] = None,
    ) -> NoteSubmission:
        """Create a note, optionally with a photo from a local file.

        Raises:
            ValueError: If name is blank
            ImageDecodeError: If image_path is not a readable image
        """
        if not name or not name.strip():
            raise ValueError("Note name must not be blank")

        image = None
        image_name = None
        if image_path is not None:
            image = load_image(image_path)
            image_name = new_id()

        note = Note.create(name.strip(), description, image_name=image_name, image=image)
        self.store.add_note(note)

        # The image is uploaded before the note record is created
        note_future = self.gateway.submit_new_note(note, local_image_path=image_path)

        logger.debug("Submitted note %s", note.id)
        return NoteSubmission(note=note, note_future=note_future)

    def delete_note_at(self, index: int) -> NoteDeletion:
        """Delete the note at a display position.

        Raises:
            IndexOutOfRange: If no note is displayed at index
        """
        note = self.store.delete_note_at(index)
        return NoteDeletion(note=note, future=self.gateway.submit_delete(note))

    def sign_in(self, username: str, password: str) -> "Future[SyncResult]":
        """Sign in and load the user's notes."""
        return self.gateway.sign_in(username, password)

    def sign_out(self) -> "Future[SyncResult]":
        """Sign out and clear the local notes."""
        return self.gateway.sign_out()

    def toggle_auth(self, username: str = "", password: str = "") -> "Future[SyncResult]":
        """Sign out when signed in, otherwise sign in."""
        if self.store.is_signed_in:
            return self.sign_out()
        return self.sign_in(username, password)
