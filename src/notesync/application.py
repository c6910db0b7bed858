"""Application wiring: one store, one backend client, one gateway."""

from dataclasses import dataclass
from typing import Optional

from notesync.config import Settings
from notesync.services.backend_client import BackendService
from notesync.services.note_actions import NoteActions
from notesync.services.sync_gateway import SyncGateway
from notesync.store.note_store import NoteStore
from notesync.store.observable import Dispatcher


@dataclass
class Application:
    """The object graph shared by every front end."""

    settings: Settings
    store: NoteStore
    backend: BackendService
    gateway: SyncGateway
    actions: NoteActions

    def close(self) -> None:
        """Wait for background requests and stop the worker pool."""
        self.gateway.shutdown(wait=True)

    def __enter__(self) -> "Application":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def create_application(settings: Settings, dispatcher: Optional[Dispatcher] = None) -> Application:
    """Build the application from settings."""
    store = NoteStore(dispatcher=dispatcher)
    backend = BackendService(
        base_url=settings.backend_url,
        token=settings.api_token,
        timeout=settings.request_timeout,
    )
    gateway = SyncGateway(store, backend, max_workers=settings.max_workers)
    actions = NoteActions(store, gateway)
    return Application(
        settings=settings,
        store=store,
        backend=backend,
        gateway=gateway,
        actions=actions,
    )
