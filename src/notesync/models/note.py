"""Note model for notesync."""

import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Optional

from PIL import Image


class SyncStatus(str, Enum):
    """Whether the backend has confirmed a note."""

    PENDING = "pending"  # Created locally, creation request in flight
    SYNCED = "synced"  # Confirmed by, or received from, the backend
    FAILED = "failed"  # Backend rejected the note or could not be reached


def new_id() -> str:
    """Generate a globally unique identifier for a note or an image key."""
    return str(uuid.uuid4())


@dataclass(frozen=True)
class Note:
    """A user note.

    Notes are immutable; the store swaps in modified copies made with
    ``with_image`` and ``with_status``, which always keep the same ``id``.
    """

    id: str
    name: str
    description: str = ""

    # Storage key of the attached photo, if any
    image_name: Optional[str] = None

    # Decoded photo, only present once it has been picked or fetched
    image: Optional[Image.Image] = field(default=None, compare=False, repr=False)

    sync_status: SyncStatus = SyncStatus.SYNCED

    def __post_init__(self) -> None:
        """Validate and convert fields after initialization."""
        if not self.id:
            raise ValueError("Note id must not be empty")
        if isinstance(self.sync_status, str):
            object.__setattr__(self, "sync_status", SyncStatus(self.sync_status))

    def __str__(self) -> str:
        return self.name

    @classmethod
    def create(
        cls,
        name: str,
        description: str = "",
        image_name: Optional[str] = None,
        image: Optional[Image.Image] = None,
    ) -> "Note":
        """Create a new local note with a fresh id, pending confirmation."""
        return cls(
            id=new_id(),
            name=name,
            description=description,
            image_name=image_name,
            image=image,
            sync_status=SyncStatus.PENDING,
        )

    @property
    def has_image(self) -> bool:
        """Whether the note references a photo in storage."""
        return self.image_name is not None

    def with_image(self, image: Optional[Image.Image]) -> "Note":
        """Return a copy carrying the decoded photo."""
        return replace(self, image=image)

    def with_status(self, status: SyncStatus) -> "Note":
        """Return a copy with a different sync status."""
        return replace(self, sync_status=status)

    def to_record(self) -> dict[str, Any]:
        """Convert to the backend note record format."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "image": self.image_name,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Note":
        """Build a confirmed note from a backend note record.

        Raises:
            ValueError: If the record is not a mapping or lacks an id or a name
        """
        if not isinstance(record, dict):
            raise ValueError(f"Malformed note record: {record!r}")
        note_id = record.get("id")
        name = record.get("name")
        if not note_id or name is None:
            raise ValueError(f"Malformed note record: {record!r}")

        return cls(
            id=str(note_id),
            name=name,
            description=record.get("description") or "",
            image_name=record.get("image") or None,
            sync_status=SyncStatus.SYNCED,
        )
