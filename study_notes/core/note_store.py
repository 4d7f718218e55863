"""Canonical in-memory note collection backed by NoteStorage."""

from __future__ import annotations

import logging
import uuid
from typing import Callable, Optional

from study_notes.core.models import (
    DEFAULT_PRIORITY,
    DEFAULT_SUBJECT,
    Note,
    NoteCreateRequest,
    ValidationError,
    now_ms,
)
from study_notes.persistence.storage import NoteStorage

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return str(uuid.uuid4())


class NoteStore:
    """Owns the ordered note collection and writes it back after every mutation.

    Insertion order is the canonical order used for persistence, export and
    sync. Display order (newest first) is derived on read only.
    """

    def __init__(
        self,
        storage: NoteStorage,
        clock: Callable[[], int] = now_ms,
        id_factory: Callable[[], str] = _new_id,
    ):
        self.storage = storage
        self._clock = clock
        self._id_factory = id_factory
        self._notes: list[Note] = list(storage.load())
        logger.info("Loaded %s note(s) from local storage", len(self._notes))

    def __len__(self) -> int:
        return len(self._notes)

    def create(self, req: NoteCreateRequest) -> Note:
        text = (req.text or "").strip()
        if not text:
            raise ValidationError("Please write a note before saving.")

        note = Note(
            id=self._id_factory(),
            text=text,
            subject=(req.subject or "").strip() or DEFAULT_SUBJECT,
            priority=(req.priority or "").strip() or DEFAULT_PRIORITY,
            due_date=req.due_date or None,
            due_time=req.due_time or None,
            created_at=self._clock(),
        )
        self._notes.append(note)
        self._persist()
        return note

    def get(self, note_id: str) -> Optional[Note]:
        return next((n for n in self._notes if n.id == note_id), None)

    def delete_by_id(self, note_id: str) -> Optional[Note]:
        for index, note in enumerate(self._notes):
            if note.id == note_id:
                del self._notes[index]
                self._persist()
                return note
        logger.warning("Delete requested for unknown note id=%s", note_id)
        return None

    def delete_at(self, display_index: int) -> Note:
        """Delete the note shown at ``display_index`` in the current display order."""
        ordered = self.list_for_display()
        if display_index < 0 or display_index >= len(ordered):
            raise IndexError(f"No note at display position {display_index}")
        target = ordered[display_index]
        self.delete_by_id(target.id)
        return target

    def clear_all(self) -> int:
        removed = len(self._notes)
        self._notes = []
        self._persist()
        return removed

    def list(self) -> tuple[Note, ...]:
        return tuple(self._notes)

    def list_for_display(self) -> tuple[Note, ...]:
        # sorted() is stable with reverse=True, so equal timestamps keep insertion order
        return tuple(sorted(self._notes, key=lambda n: n.created_at, reverse=True))

    def _persist(self) -> None:
        if not self.storage.save(self._notes):
            logger.warning("Notes kept in memory only; last change is not durable")
