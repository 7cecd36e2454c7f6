"""Rotation of previously generated workbooks into an archive directory."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

LOGGER = logging.getLogger(__name__)


def clean_archive_dir(archive_dir: str | Path) -> int:
    """Create ``archive_dir`` if needed and delete the files inside it."""
    path = Path(archive_dir)
    path.mkdir(parents=True, exist_ok=True)

    removed = 0
    for entry in path.iterdir():
        if entry.is_file():
            entry.unlink()
            removed += 1

    LOGGER.info("Archive cleaned: dir=%s removed=%s", path, removed)
    return removed


def archive_workbooks(source_dir: str | Path, archive_dir: str | Path) -> list[Path]:
    """Move every ``*.xlsx`` file of ``source_dir`` into ``archive_dir``."""
    source = Path(source_dir)
    target = Path(archive_dir)
    target.mkdir(parents=True, exist_ok=True)

    moved: list[Path] = []
    for workbook in sorted(source.glob("*.xlsx")):
        destination = target / workbook.name
        shutil.move(str(workbook), str(destination))
        moved.append(destination)

    LOGGER.info("Archived %s workbooks from %s to %s", len(moved), source, target)
    return moved
