"""Durable storage of the note collection as a single JSON blob."""

from __future__ import annotations

import json
import logging
import sqlite3
from typing import Callable, Iterable, Optional

from study_notes.core.models import Note

logger = logging.getLogger(__name__)

STORAGE_KEY = "smart_study_notes_v1"


class StorageError(RuntimeError):
    """Raised when the stored blob cannot be read or written."""


class NoteStorage:
    """Key-value persistence adapter for the note collection.

    The collection is stored as a bare JSON array of note records under one
    key. Failures never reach the caller: they are logged and leave the
    adapter in a degraded condition until the next successful write.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        key: str = STORAGE_KEY,
        on_degraded: Optional[Callable[[str], None]] = None,
    ):
        self.conn = conn
        self.key = key
        self.on_degraded = on_degraded
        self.last_error: Optional[str] = None

    @property
    def degraded(self) -> bool:
        return self.last_error is not None

    def load(self) -> list[Note]:
        try:
            raw = self._read_blob()
        except StorageError as exc:
            self._report(f"Local storage error: {exc}")
            return []

        if raw is None:
            return []

        try:
            data = json.loads(raw)
        except ValueError as exc:
            self._report(f"Local storage error: stored notes are not valid JSON ({exc})")
            return []

        if not isinstance(data, list):
            self._report(f"Local storage error: stored notes under '{self.key}' are not a list")
            return []

        try:
            return [Note.from_record(record) for record in data]
        except (TypeError, ValueError) as exc:
            self._report(f"Local storage error: malformed note record ({exc})")
            return []

    def save(self, notes: Iterable[Note]) -> bool:
        try:
            blob = json.dumps([note.to_record() for note in notes], ensure_ascii=False)
            self._write_blob(blob)
        except (StorageError, TypeError, ValueError) as exc:
            self._report(f"Local storage full/error: {exc}")
            return False

        if self.last_error is not None:
            logger.info("Local storage recovered after: %s", self.last_error)
            self.last_error = None
        return True

    def _read_blob(self) -> Optional[str]:
        try:
            row = self.conn.execute("SELECT value FROM kv_store WHERE key = ?", (self.key,)).fetchone()
        except sqlite3.Error as exc:
            raise StorageError(str(exc)) from exc
        return str(row["value"]) if row else None

    def _write_blob(self, blob: str) -> None:
        try:
            with self.conn:
                self.conn.execute(
                    "INSERT INTO kv_store(key, value) VALUES(?, ?) ON CONFLICT(key) DO UPDATE SET value=excluded.value",
                    (self.key, blob),
                )
        except sqlite3.Error as exc:
            raise StorageError(str(exc)) from exc

    def _report(self, message: str) -> None:
        logger.error(message)
        self.last_error = message
        if self.on_degraded is not None:
            self.on_degraded(message)
