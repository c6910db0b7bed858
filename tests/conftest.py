"""Pytest fixtures for notesync tests."""

import io
from unittest.mock import MagicMock

import pytest
from PIL import Image

from notesync.services.backend_client import BackendService
from notesync.services.sync_gateway import SyncGateway
from notesync.store.note_store import NoteStore


@pytest.fixture
def store():
    """Provide an empty note store."""
    return NoteStore()


@pytest.fixture
def png_bytes():
    """Provide the bytes of a small PNG image."""
    buffer = io.BytesIO()
    Image.new("RGB", (4, 3), color=(200, 30, 30)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def png_file(tmp_path, png_bytes):
    """Provide a PNG file on disk, as picked by a user."""
    path = tmp_path / "photo.png"
    path.write_bytes(png_bytes)
    return path


@pytest.fixture
def mock_backend():
    """Provide a mocked backend client."""
    return MagicMock(spec=BackendService)


@pytest.fixture
def gateway(store, mock_backend):
    """Provide a gateway over the store and the mocked backend."""
    gateway = SyncGateway(store, mock_backend, max_workers=2)
    yield gateway
    gateway.shutdown(wait=True)
