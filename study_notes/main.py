"""Application entrypoint."""

from __future__ import annotations

import logging
import tkinter as tk

from study_notes.core.service import build_service
from study_notes.persistence.db import Database, default_data_dir
from study_notes.ui.main_window import MainWindow
from study_notes.utils.logging_config import configure_logging


def main() -> None:
    data_dir = default_data_dir()
    log_path = configure_logging(data_dir / "logs")

    db = Database(data_dir / "notes.db")
    db.migrate()
    conn = db.connect()
    service = build_service(conn)

    root = tk.Tk()
    root.title("Smart Study Notes")
    root.geometry("980x720")
    window = MainWindow(root, service)

    logging.getLogger(__name__).info("App started. Log: %s", log_path)
    try:
        root.mainloop()
    finally:
        window.shutdown()
        conn.close()


if __name__ == "__main__":
    main()
