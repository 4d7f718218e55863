"""JSON document encoding for export and device sync."""

from __future__ import annotations

import json
from typing import Any, Iterable

from study_notes.core.models import Note

EXPORT_FILENAME = "study-notes.json"


def notes_document(notes: Iterable[Note]) -> dict[str, Any]:
    """Wrap notes in the ``{"notes": [...]}`` container."""
    return {"notes": [note.to_record() for note in notes]}


def export_document(notes: Iterable[Note]) -> bytes:
    """Return the pretty-printed export document as UTF-8 bytes."""
    return json.dumps(notes_document(notes), indent=2, ensure_ascii=False).encode("utf-8")
