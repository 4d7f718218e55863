"""Logging setup for file and console outputs."""

from __future__ import annotations

import logging
from pathlib import Path


def configure_logging(log_dir: Path, level: int = logging.INFO) -> Path:
    """Configure logging and return log file path."""
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "study_notes.log"

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        handlers=[
            logging.FileHandler(log_file, encoding="utf-8"),
            logging.StreamHandler(),
        ],
        force=True,
    )
    # bleak logs every advertisement at DEBUG
    logging.getLogger("bleak").setLevel(max(level, logging.INFO))
    return log_file
