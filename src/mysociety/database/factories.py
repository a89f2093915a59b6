"""Store factory functions for creating store instances."""

import os
from pathlib import Path
from typing import Optional

from mysociety.database.workbook_store import WorkbookStore

DEFAULT_FILE_NAME = "mysociety_data.xlsx"


def default_data_dir() -> Path:
    """Return ~/.mysociety, the default home of the store file and backups."""
    return Path.home() / ".mysociety"


def create_workbook_store(
    data_file: Optional[str] = None, backup_dir: Optional[str] = None
) -> WorkbookStore:
    """Create a workbook store instance.

    Args:
        data_file: Path to the ``.xlsx`` store file. If None, checks the
            MYSOCIETY_DATA_FILE environment variable, then defaults to
            ~/.mysociety/mysociety_data.xlsx
        backup_dir: Directory for pre-write backups. If None, checks
            MYSOCIETY_BACKUP_DIR, then defaults to ~/.mysociety/backups

    Returns:
        WorkbookStore instance; the file itself is created on first access
    """
    if data_file is None:
        data_file = os.environ.get("MYSOCIETY_DATA_FILE")
    if data_file is None:
        data_file = str(default_data_dir() / DEFAULT_FILE_NAME)

    if backup_dir is None:
        backup_dir = os.environ.get("MYSOCIETY_BACKUP_DIR")
    if backup_dir is None:
        backup_dir = str(default_data_dir() / "backups")

    return WorkbookStore(data_file, backup_dir)
