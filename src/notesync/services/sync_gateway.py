"""Bridge between the note store and the notes backend.

Outbound, every local change is submitted to a worker pool and its outcome is
written back into the store (the note's sync status). Inbound, auth state,
remote note changes and finished image downloads become store mutations.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional, Union

from PIL import Image

from notesync.exceptions import RemoteOperationFailed
from notesync.models.note import Note, SyncStatus
from notesync.services.backend_client import BackendAPIError, BackendService
from notesync.services.image_codec import ImageDecodeError, decode_image
from notesync.store.note_store import NoteStore

logger = logging.getLogger(__name__)


class AuthEvent(str, Enum):
    """Auth state changes reported by the backend."""

    SIGNED_IN = "signed_in"
    SIGNED_OUT = "signed_out"
    SESSION_EXPIRED = "session_expired"


class RemoteEventType(str, Enum):
    """Kind of change in the backend change feed."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


@dataclass
class RemoteEvent:
    """A note change observed on the backend."""

    kind: RemoteEventType
    record: dict[str, Any]

    def __post_init__(self) -> None:
        if isinstance(self.kind, str):
            self.kind = RemoteEventType(self.kind)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "RemoteEvent":
        """Build an event from a change feed entry.

        Raises:
            KeyError: If the entry has no type
            ValueError: If the entry is not a mapping or its type is unknown
        """
        if not isinstance(payload, dict):
            raise ValueError(f"Malformed change event: {payload!r}")
        return cls(kind=payload["type"], record=payload.get("note") or {})


@dataclass
class SyncResult:
    """Outcome of a gateway operation."""

    operation: str
    success: bool
    note_id: Optional[str] = None
    error: Optional[RemoteOperationFailed] = None


@dataclass
class ImageResult:
    """Outcome of an image fetch."""

    key: str
    image: Optional[Image.Image] = None
    error: Optional[RemoteOperationFailed] = None

    @property
    def success(self) -> bool:
        return self.error is None and self.image is not None


ImageCallback = Callable[[ImageResult], None]


def _remote_failure(operation: str, error: Exception) -> RemoteOperationFailed:
    if isinstance(error, BackendAPIError):
        return RemoteOperationFailed(operation, error.message, error.status_code)
    return RemoteOperationFailed(operation, str(error))


class SyncGateway:
    """Forwards note store changes to the backend and backend events to the store.

    The gateway holds no note state of its own; the store is injected and
    shared with the rest of the application.

    Args:
        store (NoteStore): The application's note store
        backend (BackendService): Backend client
        executor (ThreadPoolExecutor, optional): Worker pool for backend calls
        max_workers (int): Size of the worker pool created when none is given
    """

    def __init__(
        self,
        store: NoteStore,
        backend: BackendService,
        executor: Optional[ThreadPoolExecutor] = None,
        max_workers: int = 4,
    ):
        self.store = store
        self.backend = backend
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="notesync-sync"
        )
        self._change_cursor: Optional[str] = None
        self._lock = threading.Lock()
        # Image files of failed notes whose upload has not succeeded yet
        self._unsent_images: dict[str, Union[str, Path]] = {}

    def _submit(self, fn: Callable[..., Any], *args: Any) -> Future:
        return self._executor.submit(fn, *args)

    # ==================== Outbound ====================

    def submit_new_note(
        self, note: Note, local_image_path: Optional[Union[str, Path]] = None
    ) -> "Future[SyncResult]":
        """Create the note on the backend, uploading its picked image first.

        The stored note is marked synced once the backend confirms it, or
        failed if the upload or the creation fails. A failed note keeps its
        image path so that ``retry_failed`` can upload it again.
        """
        return self._submit(self._create_note, note, local_image_path)

    def _create_note(
        self, note: Note, local_image_path: Optional[Union[str, Path]] = None
    ) -> SyncResult:
        if local_image_path is not None and note.image_name is not None:
            upload = self._upload_image(local_image_path, note.image_name)
            if not upload.success:
                with self._lock:
                    self._unsent_images[note.id] = local_image_path
                self.store.update_note(note.id, lambda n: n.with_status(SyncStatus.FAILED))
                return SyncResult("create_note", success=False, note_id=note.id, error=upload.error)

        with self._lock:
            self._unsent_images.pop(note.id, None)

        try:
            self.backend.create_note(note.to_record())
        except BackendAPIError as e:
            error = _remote_failure("create_note", e)
            logger.warning("Note %s not synced: %s", note.id, error)
            self.store.update_note(note.id, lambda n: n.with_status(SyncStatus.FAILED))
            return SyncResult("create_note", success=False, note_id=note.id, error=error)

        self.store.update_note(note.id, lambda n: n.with_status(SyncStatus.SYNCED))
        logger.info("Note %s synced", note.id)
        return SyncResult("create_note", success=True, note_id=note.id)

    def submit_image_upload(
        self, local_image_path: Union[str, Path], image_key: str
    ) -> "Future[SyncResult]":
        """Upload a picked image file under its storage key."""
        return self._submit(self._upload_image, local_image_path, image_key)

    def _upload_image(self, local_image_path: Union[str, Path], image_key: str) -> SyncResult:
        try:
            self.backend.upload_image(local_image_path, image_key)
        except (BackendAPIError, OSError) as e:
            error = _remote_failure("upload_image", e)
            logger.warning("Image %s not uploaded: %s", image_key, error)
            return SyncResult("upload_image", success=False, error=error)
        return SyncResult("upload_image", success=True)

    def submit_delete(self, note: Note) -> "Future[SyncResult]":
        """Delete the note on the backend."""
        return self._submit(self._delete_note, note)

    def _delete_note(self, note: Note) -> SyncResult:
        try:
            self.backend.delete_note(note.id)
        except BackendAPIError as e:
            error = _remote_failure("delete_note", e)
            logger.warning("Note %s not deleted remotely: %s", note.id, error)
            return SyncResult("delete_note", success=False, note_id=note.id, error=error)
        return SyncResult("delete_note", success=True, note_id=note.id)

    def fetch_image(
        self, image_key: str, on_complete: Optional[ImageCallback] = None
    ) -> "Future[ImageResult]":
        """Download and decode an image in the background.

        ``on_complete`` is called exactly once, with a failed result if the
        download or the decoding fails.
        """
        return self._submit(self._fetch_image, image_key, on_complete)

    def _fetch_image(self, image_key: str, on_complete: Optional[ImageCallback]) -> ImageResult:
        try:
            data = self.backend.download_image(image_key)
            result = ImageResult(image_key, image=decode_image(data))
        except (BackendAPIError, ImageDecodeError) as e:
            error = _remote_failure("fetch_image", e)
            logger.warning("Image %s not fetched: %s", image_key, error)
            result = ImageResult(image_key, error=error)

        if on_complete is not None:
            on_complete(result)
        return result

    def retry_failed(self) -> list["Future[SyncResult]"]:
        """Resubmit every failed note, uploading its image again if that failed."""
        futures = []
        for note in self.store.notes:
            if note.sync_status == SyncStatus.FAILED:
                self.store.update_note(note.id, lambda n: n.with_status(SyncStatus.PENDING))
                with self._lock:
                    image_path = self._unsent_images.get(note.id)
                futures.append(self.submit_new_note(note, image_path))
        if futures:
            logger.info("Resubmitted %d failed note(s)", len(futures))
        return futures

    # ==================== Auth ====================

    def sign_in(self, username: str, password: str) -> "Future[SyncResult]":
        """Sign in, then load the user's notes."""
        return self._submit(self._sign_in, username, password)

    def _sign_in(self, username: str, password: str) -> SyncResult:
        try:
            self.backend.sign_in(username, password)
        except BackendAPIError as e:
            error = _remote_failure("sign_in", e)
            logger.warning("Sign-in failed: %s", error)
            return SyncResult("sign_in", success=False, error=error)
        return self.handle_auth_event(AuthEvent.SIGNED_IN)

    def sign_out(self) -> "Future[SyncResult]":
        """Sign out and clear local notes."""
        return self._submit(self._sign_out)

    def _sign_out(self) -> SyncResult:
        try:
            self.backend.sign_out()
        except BackendAPIError as e:
            error = _remote_failure("sign_out", e)
            logger.warning("Sign-out failed: %s", error)
            return SyncResult("sign_out", success=False, error=error)
        return self.handle_auth_event(AuthEvent.SIGNED_OUT)

    def check_session(self) -> "Future[SyncResult]":
        """Ask the backend for the current auth state and apply it."""
        return self._submit(self._check_session)

    def _check_session(self) -> SyncResult:
        try:
            signed_in = self.backend.fetch_auth_session()
        except BackendAPIError as e:
            error = _remote_failure("fetch_auth_session", e)
            logger.warning("Cannot fetch auth session: %s", error)
            return SyncResult("fetch_auth_session", success=False, error=error)
        return self.handle_auth_event(AuthEvent.SIGNED_IN if signed_in else AuthEvent.SIGNED_OUT)

    # ==================== Inbound ====================

    def handle_auth_event(self, event: AuthEvent) -> SyncResult:
        """Apply an auth state change to the store.

        Signing in loads the user's notes; any other event clears them.
        """
        event = AuthEvent(event)
        logger.info("Auth event: %s", event.value)

        if event == AuthEvent.SIGNED_IN:
            self.store.set_signed_in(True)
            return self.refresh_notes()

        self.store.reset_notes()
        self.store.set_signed_in(False)
        self._change_cursor = None
        return SyncResult(event.value, success=True)

    def refresh_notes(self) -> SyncResult:
        """Rebuild the store from the backend's note records.

        The list is swapped in one store operation. Local notes missing from
        the listing are kept when they are unconfirmed, or when they were
        added or confirmed while the listing was in flight. Images are fetched
        in the background and attached as they arrive.
        """
        synced_before = {
            note.id for note in self.store.notes if note.sync_status == SyncStatus.SYNCED
        }
        try:
            records = self.backend.list_notes()
        except BackendAPIError as e:
            error = _remote_failure("list_notes", e)
            logger.warning("Cannot list notes: %s", error)
            return SyncResult("list_notes", success=False, error=error)

        remote: dict[str, Note] = {}
        for record in records:
            try:
                note = Note.from_record(record)
            except ValueError as e:
                logger.warning("Skipping note record: %s", e)
                continue
            if note.id in remote:
                logger.warning("Backend listed note %s twice", note.id)
                continue
            remote[note.id] = note

        def rebuild(current: tuple[Note, ...]) -> list[Note]:
            local = {note.id: note for note in current}
            notes = []
            for note in remote.values():
                existing = local.get(note.id)
                if existing is not None and existing.image_name == note.image_name:
                    note = note.with_image(existing.image)
                notes.append(note)
            # Local notes the backend has not confirmed, or confirmed too late
            # to be listed, stay visible
            notes.extend(
                note
                for note in current
                if note.id not in remote
                and (note.sync_status != SyncStatus.SYNCED or note.id not in synced_before)
            )
            return notes

        self.store.replace_notes(rebuild)
        for note in remote.values():
            if note.has_image:
                current = self.store.get_note(note.id)
                if current is not None and current.image is None:
                    self._attach_image_later(current)

        logger.info("Loaded %d note(s) from backend", len(remote))
        return SyncResult("list_notes", success=True)

    def apply_remote_event(self, event: RemoteEvent) -> None:
        """Apply one backend change to the store."""
        if event.kind == RemoteEventType.DELETED:
            note_id = event.record.get("id")
            if note_id and self.store.remove_note(str(note_id)) is not None:
                logger.debug("Removed note %s after remote delete", note_id)
            return

        note = Note.from_record(event.record)
        existing = self.store.get_note(note.id)
        if existing is None:
            self._add_remote_note(note)
            return

        if existing.image_name == note.image_name and existing.image is not None:
            note = note.with_image(existing.image)
        self.store.update_note(note.id, lambda _: note)
        if note.has_image and note.image is None:
            self._attach_image_later(note)

    def pull_changes(self) -> SyncResult:
        """Apply every backend change since the previous pull."""
        try:
            events, cursor = self.backend.fetch_changes(self._change_cursor)
        except BackendAPIError as e:
            error = _remote_failure("fetch_changes", e)
            logger.warning("Cannot fetch changes: %s", error)
            return SyncResult("fetch_changes", success=False, error=error)

        for payload in events:
            try:
                event = RemoteEvent.from_payload(payload)
                self.apply_remote_event(event)
            except (KeyError, ValueError) as e:
                logger.warning("Skipping change event %r: %s", payload, e)
        self._change_cursor = cursor
        return SyncResult("fetch_changes", success=True)

    def _add_remote_note(self, note: Note) -> None:
        self.store.add_note(note)
        if note.has_image:
            self._attach_image_later(note)

    def _attach_image_later(self, note: Note) -> None:
        def attach(result: ImageResult) -> None:
            if result.success:
                self.store.update_note(note.id, lambda n: n.with_image(result.image))

        try:
            self.fetch_image(note.image_name, on_complete=attach)
        except RuntimeError:
            # Executor already shut down
            logger.debug("Skipped image %s fetch during shutdown", note.image_name)

    def shutdown(self, wait: bool = True, cancel_pending: bool = False) -> None:
        """Stop the worker pool if the gateway created it.

        Cancelled requests never run, so their callbacks are not called.
        """
        if self._owns_executor:
            self._executor.shutdown(wait=wait, cancel_futures=cancel_pending)
