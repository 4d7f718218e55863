"""Domain models for the study notes client."""

from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

DEFAULT_SUBJECT = "General"
DEFAULT_PRIORITY = "normal"


class ValidationError(ValueError):
    """Raised when a note cannot be created from the given input."""


def now_ms() -> int:
    """Return current time as milliseconds since the epoch."""
    return int(time.time() * 1000)


@dataclass(slots=True)
class NoteCreateRequest:
    """Input payload used when creating a local note."""

    text: str
    subject: str = ""
    priority: str = ""
    due_date: Optional[str] = None
    due_time: Optional[str] = None


@dataclass(frozen=True, slots=True)
class Note:
    """Persisted note entity."""

    id: str
    text: str
    subject: str
    priority: str
    due_date: Optional[str]
    due_time: Optional[str]
    created_at: int

    def to_record(self) -> dict[str, Any]:
        """Return the NoteRecord mapping used for storage, export and sync."""
        return {
            "id": self.id,
            "subject": self.subject,
            "priority": self.priority,
            "dueDate": self.due_date,
            "dueTime": self.due_time,
            "text": self.text,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Note":
        """Parse a NoteRecord. Raises ValueError/TypeError when malformed."""
        if not isinstance(record, Mapping):
            raise TypeError(f"Note record must be an object, got {type(record).__name__}")

        note_id = record.get("id")
        text = record.get("text")
        created_at = record.get("createdAt")
        if not isinstance(note_id, str) or not note_id:
            raise ValueError("Note record without a valid 'id'")
        if not isinstance(text, str):
            raise ValueError(f"Note record {note_id} without a valid 'text'")
        if isinstance(created_at, bool) or not isinstance(created_at, int):
            raise ValueError(f"Note record {note_id} without an integer 'createdAt'")

        return cls(
            id=note_id,
            text=text,
            subject=_optional_str(record.get("subject")) or DEFAULT_SUBJECT,
            priority=_optional_str(record.get("priority")) or DEFAULT_PRIORITY,
            due_date=_optional_str(record.get("dueDate")),
            due_time=_optional_str(record.get("dueTime")),
            created_at=created_at,
        )

    def due_label(self) -> str:
        if self.due_date or self.due_time:
            return f"Due: {self.due_date or ''} {self.due_time or ''}".rstrip()
        return "Due: not set"


def _optional_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise TypeError(f"Expected string or null, got {type(value).__name__}")
    return value


class SyncState(str, Enum):
    """Network transport status."""

    IDLE = "idle"
    IN_PROGRESS = "in_progress"
    OK = "ok"
    ERROR = "error"


class LinkState(str, Enum):
    """Wireless transport status."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class SyncStatus:
    state: SyncState
    detail: str = ""


@dataclass(frozen=True, slots=True)
class LinkStatus:
    state: LinkState
    detail: str = ""


@dataclass(frozen=True, slots=True)
class DeviceFilter:
    """Which wireless peers the client will offer and talk to."""

    name_prefix: str
    service_uuids: tuple[str, ...] = ()


@dataclass(slots=True)
class AppSettings:
    """User-configurable application settings."""

    device_base_url: str = "http://192.168.1.50"
    sync_endpoint: str = "/api/notes"
    status_endpoint: str = "/api/status"
    request_timeout_seconds: int = 10
    ble_name_prefix: str = "StudyReminder"
    ble_service_uuid: str = "0000ffe0-0000-1000-8000-00805f9b34fb"
    ble_characteristic_uuid: str = "0000ffe1-0000-1000-8000-00805f9b34fb"
    ble_scan_seconds: int = 8
    default_subject: str = DEFAULT_SUBJECT
    default_priority: str = DEFAULT_PRIORITY

    @property
    def sync_url(self) -> str:
        return _join_url(self.device_base_url, self.sync_endpoint)

    @property
    def status_url(self) -> str:
        return _join_url(self.device_base_url, self.status_endpoint)

    def device_filter(self) -> DeviceFilter:
        services = tuple(s.strip().lower() for s in self.ble_service_uuid.split(",") if s.strip())
        return DeviceFilter(name_prefix=self.ble_name_prefix, service_uuids=services)


def _join_url(base: str, endpoint: str) -> str:
    endpoint = endpoint.strip()
    if endpoint.startswith(("http://", "https://")):
        return endpoint
    return base.strip().rstrip("/") + "/" + endpoint.lstrip("/")
