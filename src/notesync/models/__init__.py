"""Data models for notesync."""

from notesync.models.note import Note, SyncStatus, new_id

__all__ = ["Note", "SyncStatus", "new_id"]
