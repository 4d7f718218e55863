"""Repository for the subject and priority pick lists used by the note form."""

from __future__ import annotations

import sqlite3


class LabelsRepository:
    """Data access for labels table."""

    DEFAULT_VALUES: dict[str, list[str]] = {
        "Subject": ["General", "Math", "Physics", "Chemistry", "Biology", "History", "Languages"],
        "Priority": ["low", "normal", "high"],
    }

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def list_active(self, category: str) -> list[str]:
        rows = self.conn.execute(
            """
            SELECT value
            FROM labels
            WHERE category = ? AND active = 1
            ORDER BY id ASC
            """,
            (category,),
        ).fetchall()
        return [str(row["value"]) for row in rows]

    def add_label(self, category: str, value: str) -> None:
        normalized = value.strip()
        if not normalized:
            raise ValueError("Label value cannot be empty")

        self.conn.execute(
            """
            INSERT INTO labels(category, value, active)
            VALUES(?, ?, 1)
            ON CONFLICT(category, value) DO UPDATE SET active = 1
            """,
            (category, normalized),
        )
        self.conn.commit()

    def deactivate_label(self, category: str, value: str) -> None:
        self.conn.execute(
            "UPDATE labels SET active = 0 WHERE category = ? AND value = ?",
            (category, value),
        )
        self.conn.commit()

    def ensure_default_values(self) -> None:
        # existing rows keep their active flag
        for category, values in self.DEFAULT_VALUES.items():
            for value in values:
                self.conn.execute(
                    """
                    INSERT INTO labels(category, value, active)
                    VALUES(?, ?, 1)
                    ON CONFLICT(category, value) DO NOTHING
                    """,
                    (category, value),
                )
        self.conn.commit()
