"""Application service layer coordinating notes, persistence and device sync."""

from __future__ import annotations

import logging
import queue
import sqlite3
import threading
from pathlib import Path
from typing import Any, Optional

from study_notes.core.export import export_document
from study_notes.core.models import (
    AppSettings,
    LinkStatus,
    Note,
    NoteCreateRequest,
    SyncStatus,
    ValidationError,
)
from study_notes.core.note_store import NoteStore
from study_notes.core.sync import NetworkSyncClient, PeerChooser, WirelessSyncClient
from study_notes.integrations.device_client import DeviceClient
from study_notes.persistence.labels_repository import LabelsRepository
from study_notes.persistence.repositories import SettingsRepository
from study_notes.persistence.storage import NoteStorage

logger = logging.getLogger(__name__)


class StudyNotesService:
    """Use-case layer for notes, export and the two device transports."""

    def __init__(
        self,
        store: NoteStore,
        settings_repo: SettingsRepository,
        labels_repo: LabelsRepository,
        network: NetworkSyncClient,
        wireless: WirelessSyncClient,
    ):
        self.store = store
        self.settings_repo = settings_repo
        self.labels_repo = labels_repo
        self.network = network
        self.wireless = wireless
        self.events: queue.Queue[tuple[str, object]] = queue.Queue()
        self.labels_repo.ensure_default_values()

    def get_settings(self) -> AppSettings:
        return self.settings_repo.load()

    def save_settings(self, settings: AppSettings) -> None:
        self.settings_repo.save(settings)
        self.wireless.characteristic_uuid = settings.ble_characteristic_uuid
        self.wireless.scan_seconds = settings.ble_scan_seconds
        self.network.device_client.timeout = settings.request_timeout_seconds

    def get_labels(self, category: str) -> list[str]:
        return self.labels_repo.list_active(category)

    def list_notes(self) -> tuple[Note, ...]:
        return self.store.list_for_display()

    def list_canonical(self) -> tuple[Note, ...]:
        return self.store.list()

    def create_note(self, req: NoteCreateRequest) -> tuple[Optional[Note], str]:
        try:
            note = self.store.create(req)
        except ValidationError as exc:
            return None, str(exc)
        logger.info("Note id=%s saved locally", note.id)
        return note, "Note saved locally."

    def delete_note(self, note_id: str) -> bool:
        return self.store.delete_by_id(note_id) is not None

    def delete_note_at(self, display_index: int) -> Note:
        return self.store.delete_at(display_index)

    def clear_all(self, confirmed: bool) -> int:
        if not confirmed:
            return 0
        removed = self.store.clear_all()
        logger.info("Cleared %s note(s)", removed)
        return removed

    @property
    def storage_degraded(self) -> bool:
        return self.store.storage.degraded

    @property
    def network_status(self) -> SyncStatus:
        return self.network.status.current

    @property
    def wireless_status(self) -> LinkStatus:
        return self.wireless.status.current

    def export_document(self) -> bytes:
        return export_document(self.store.list())

    def export_to(self, path: Path) -> Path:
        path.write_bytes(self.export_document())
        logger.info("Exported %s note(s) to %s", len(self.store), path)
        return path

    def sync_network(self, notes: Optional[tuple[Note, ...]] = None) -> SyncStatus:
        settings = self.get_settings()
        snapshot = self.store.list() if notes is None else notes
        return self.network.sync(snapshot, settings.sync_url)

    def check_device_status(self) -> dict[str, Any]:
        settings = self.get_settings()
        return self.network.device_client.get_status(settings.status_url)

    def connect_wireless(self, chooser: Optional[PeerChooser] = None) -> LinkStatus:
        settings = self.get_settings()
        self.wireless.scan_seconds = settings.ble_scan_seconds
        self.wireless.characteristic_uuid = settings.ble_characteristic_uuid
        return self.wireless.connect(settings.device_filter(), chooser)

    def send_note_count(self) -> None:
        """Write the current note count to the connected peer. Raises LinkError."""
        self.wireless.send_note_count(len(self.store))

    def disconnect_wireless(self) -> LinkStatus:
        return self.wireless.disconnect()

    def start_network_sync(self) -> threading.Thread:
        snapshot = self.store.list()
        return self._spawn("network", self.sync_network, snapshot)

    def start_wireless_connect(self, chooser: Optional[PeerChooser] = None) -> threading.Thread:
        return self._spawn("wireless", self.connect_wireless, chooser)

    def _spawn(self, kind: str, target, *args) -> threading.Thread:
        def worker() -> None:
            try:
                result: object = target(*args)
            except Exception as exc:  # noqa: BLE001
                logger.exception("%s task failed", kind)
                result = exc
            self.events.put((kind, result))

        thread = threading.Thread(target=worker, name=f"{kind}-sync", daemon=True)
        thread.start()
        return thread


def build_service(conn: sqlite3.Connection) -> StudyNotesService:
    """Wire the store, repositories and both transports on one connection."""
    settings_repo = SettingsRepository(conn)
    settings = settings_repo.load()

    store = NoteStore(NoteStorage(conn))
    network = NetworkSyncClient(DeviceClient(timeout=settings.request_timeout_seconds))
    wireless = WirelessSyncClient(
        scan_seconds=settings.ble_scan_seconds,
        characteristic_uuid=settings.ble_characteristic_uuid,
    )
    return StudyNotesService(store, settings_repo, LabelsRepository(conn), network, wireless)
