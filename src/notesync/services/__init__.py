"""Services for notesync."""

from notesync.services.backend_client import BackendAPIError, BackendService
from notesync.services.image_codec import ImageDecodeError, decode_image, load_image
from notesync.services.note_actions import NoteActions, NoteDeletion, NoteSubmission
from notesync.services.sync_gateway import (
    AuthEvent,
    ImageResult,
    RemoteEvent,
    RemoteEventType,
    SyncGateway,
    SyncResult,
)

__all__ = [
    "AuthEvent",
    "BackendAPIError",
    "BackendService",
    "ImageDecodeError",
    "ImageResult",
    "NoteActions",
    "NoteDeletion",
    "NoteSubmission",
    "RemoteEvent",
    "RemoteEventType",
    "SyncGateway",
    "SyncResult",
    "decode_image",
    "load_image",
]
