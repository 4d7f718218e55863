"""Repository for application settings."""

from __future__ import annotations

import sqlite3
from dataclasses import Field, fields
from typing import Optional

from study_notes.core.models import AppSettings

_UPSERT_SETTING = "INSERT INTO settings(key, value) VALUES(?, ?) ON CONFLICT(key) DO UPDATE SET value=excluded.value"


def _is_int_field(f: Field) -> bool:
    return f.type in (int, "int")


class SettingsRepository:
    """Persist and load app settings as key-value pairs."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def get_setting(self, key: str) -> Optional[str]:
        row = self.conn.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
        return str(row["value"]) if row else None

    def set_setting(self, key: str, value: str) -> None:
        self.conn.execute(_UPSERT_SETTING, (key, value))
        self.conn.commit()

    def load(self) -> AppSettings:
        rows = self.conn.execute("SELECT key, value FROM settings").fetchall()
        values = {r["key"]: r["value"] for r in rows}
        base = AppSettings()
        for f in fields(base):
            if f.name not in values:
                continue
            raw_value = values[f.name]
            if _is_int_field(f):
                try:
                    casted = int(raw_value)
                except (TypeError, ValueError):
                    continue
            else:
                casted = str(raw_value)
            setattr(base, f.name, casted)
        return base

    def save(self, settings: AppSettings) -> None:
        for f in fields(settings):
            self.conn.execute(_UPSERT_SETTING, (f.name, str(getattr(settings, f.name))))
        self.conn.commit()
