"""Workbook-backed implementation of the Store interface.

The store file is a single ``.xlsx`` workbook holding the ``Expenses`` and
``Payments`` sheets. Every mutation follows the same cycle while holding the
file's FIFO lock:

1. copy the current file to the backup directory (if it exists),
2. read the whole workbook,
3. apply the change in memory,
4. save to a temporary file next to the real one and ``os.replace`` it over
   the real path.

Readers never take the lock. They always open one complete file version
because the publish step is a single rename.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
import time
import uuid
import zipfile
from dataclasses import replace
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from openpyxl.utils.exceptions import InvalidFileException

from mysociety.database.base import Store
from mysociety.database.locking import lock_for
from mysociety.database.mappers import domain_to_cells, row_to_domain
from mysociety.database.schema import COLUMN_WIDTHS, COLUMNS, header_index
from mysociety.domain.entities import (
    RECORD_TYPES,
    Actor,
    Record,
    RecordKind,
    RecordListing,
)
from mysociety.domain.errors import (
    NotFoundError,
    StorageError,
    ValidationError,
    record_not_found,
    storage_failure,
)
from mysociety.domain.validation import normalize_fields, validate_record

logger = logging.getLogger(__name__)

# Failures that mean the file could not be read, copied or written.
_STORAGE_ERRORS = (OSError, zipfile.BadZipFile, InvalidFileException, KeyError, ValueError)

# A reader can hit a sharing violation while a writer replaces the file on
# Windows. POSIX rename never produces one.
_READ_ATTEMPTS = 3
_READ_RETRY_DELAY = 0.05


def _utcnow() -> datetime:
    return datetime.now(UTC)


class WorkbookStore(Store):
    """Store keeping both ledger tables in one workbook file."""

    def __init__(
        self,
        file_path: str | os.PathLike,
        backup_dir: str | os.PathLike,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize workbook store.

        Args:
            file_path: Path to the ``.xlsx`` store file (created on first access)
            backup_dir: Directory receiving a copy of the file before each mutation
            clock: Callable returning the current aware UTC time
        """
        self.file_path = Path(file_path)
        self.backup_dir = Path(backup_dir)
        self._clock = clock or _utcnow
        self._lock = lock_for(self.file_path)
        try:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            self.backup_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(storage_failure("prepare directories for", "store", None, e)) from e

    # File lifecycle
    def initialize(self) -> None:
        """Create the store file with header-only tables if it does not exist."""
        if self.file_path.exists():
            return
        with self._lock.held():
            try:
                self._ensure_file()
            except _STORAGE_ERRORS as e:
                logger.error("Could not create store file %s: %s", self.file_path, e)
                raise StorageError(storage_failure("create", "store file", None, e)) from e

    def _ensure_file(self) -> None:
        # Caller holds the lock.
        if self.file_path.exists():
            return
        self._publish(self._new_workbook())
        logger.info("Created store file %s", self.file_path)

    def _new_workbook(self) -> Workbook:
        workbook = Workbook()
        workbook.remove(workbook.active)
        bold = Font(bold=True)
        for kind in RecordKind:
            sheet = workbook.create_sheet(kind.sheet_name)
            sheet.append(list(COLUMNS[kind]))
            for slot, name in enumerate(COLUMNS[kind], start=1):
                sheet.cell(row=1, column=slot).font = bold
                sheet.column_dimensions[get_column_letter(slot)].width = COLUMN_WIDTHS[name]
        return workbook

    def _load_workbook(self) -> Workbook:
        for attempt in range(1, _READ_ATTEMPTS + 1):
            try:
                return load_workbook(self.file_path)
            except PermissionError:
                if attempt == _READ_ATTEMPTS:
                    raise
                logger.debug("Store file busy, retrying read (attempt %d)", attempt)
                time.sleep(_READ_RETRY_DELAY)
        raise AssertionError("unreachable")

    def _read_table(self, workbook: Workbook, kind: RecordKind) -> tuple[Any, dict, list]:
        """Return the sheet, its header index and ``(row_number, record)`` pairs."""
        sheet = workbook[kind.sheet_name]
        rows = sheet.iter_rows(values_only=True)
        header = next(rows, None)
        if header is None:
            raise KeyError(f"{kind.sheet_name} sheet has no header row")
        index = header_index(kind, list(header))
        records = []
        for row_number, values in enumerate(rows, start=2):
            if all(value is None for value in values):
                continue
            records.append((row_number, row_to_domain(kind, values, index)))
        return sheet, index, records

    def _read_records(self, kind: RecordKind) -> list[Record]:
        self.initialize()
        try:
            _, _, rows = self._read_table(self._load_workbook(), kind)
        except _STORAGE_ERRORS as e:
            logger.error("Could not read %s from %s: %s", kind.sheet_name, self.file_path, e)
            raise StorageError(storage_failure("read", kind.sheet_name, None, e)) from e
        return [record for _, record in rows]

    def _publish(self, workbook: Workbook) -> None:
        """Write the workbook to a temporary file and rename it over the store file."""
        fd, temp_path = tempfile.mkstemp(
            dir=self.file_path.parent, prefix=f".{self.file_path.name}.", suffix=".tmp"
        )
        os.close(fd)
        try:
            workbook.save(temp_path)
            with open(temp_path, "r+b") as handle:
                os.fsync(handle.fileno())
            os.replace(temp_path, self.file_path)
        except Exception:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise
        logger.debug("Published new version of %s", self.file_path)

    # Backups
    def _backup_path(self) -> Path:
        stamp = self._clock().astimezone(UTC).strftime("%Y-%m-%dT%H-%M-%S-%fZ")
        stem, suffix = self.file_path.stem, self.file_path.suffix
        candidate = self.backup_dir / f"{stem}_{stamp}{suffix}"
        counter = 1
        while candidate.exists():
            candidate = self.backup_dir / f"{stem}_{stamp}_{counter:02d}{suffix}"
            counter += 1
        return candidate

    def _backup(self) -> Optional[Path]:
        if not self.file_path.exists():
            return None
        backup_path = self._backup_path()
        shutil.copy2(self.file_path, backup_path)
        logger.debug("Backed up %s to %s", self.file_path.name, backup_path)
        return backup_path

    def create_backup(self) -> Optional[Path]:
        """Copy the store file to the backup directory. None if there is no file yet."""
        try:
            return self._backup()
        except OSError as e:
            logger.error("Backup of %s failed: %s", self.file_path, e)
            raise StorageError(storage_failure("back up", "store file", None, e)) from e

    def list_backups(self) -> list[Path]:
        """List backup files, newest first."""
        if not self.backup_dir.is_dir():
            return []
        pattern = f"{self.file_path.stem}_*{self.file_path.suffix}"
        return sorted(self.backup_dir.glob(pattern), key=lambda p: p.name, reverse=True)

    # Mutations
    def _mutate(
        self,
        operation: str,
        kind: RecordKind,
        target: Optional[str],
        apply: Callable[[list], tuple[Record, int, Record]],
    ) -> Record:
        """Run one read-modify-write-publish cycle under the file lock.

        ``apply`` receives the ``(row_number, record)`` pairs of the table and
        returns the record to write, the sheet row to write it to, and the
        value handed back to the caller.
        """
        with self._lock.held():
            try:
                self._backup()
                self._ensure_file()
                workbook = self._load_workbook()
                sheet, index, rows = self._read_table(workbook, kind)
            except _STORAGE_ERRORS as e:
                logger.error(
                    "%s of %s record %s aborted while reading: %s",
                    operation, kind.value, target or "(new)", e,
                )
                raise StorageError(storage_failure(operation, kind.sheet_name, target, e)) from e

            to_write, row_number, result = apply(rows)

            for name, value in domain_to_cells(to_write).items():
                cell = sheet.cell(row=row_number, column=index[name] + 1)
                cell.value = value
                if isinstance(value, str):
                    # Text starting with "=" is stored as text, never as a formula.
                    cell.data_type = "s"

            try:
                self._publish(workbook)
            except _STORAGE_ERRORS as e:
                logger.error(
                    "%s of %s record %s aborted while publishing: %s",
                    operation, kind.value, to_write.id, e,
                )
                raise StorageError(
                    storage_failure(operation, kind.sheet_name, to_write.id, e)
                ) from e

        logger.info("%s %s record %s", operation.capitalize(), kind.value, to_write.id)
        return result

    def _modified_stamp(self, current: Record) -> datetime:
        floor = current.modified_at or current.created_at
        return max(self._clock(), floor)

    @staticmethod
    def _find(kind: RecordKind, rows: list, record_id: str) -> tuple[int, Record]:
        for row_number, record in rows:
            if record.id == record_id and not record.deleted:
                return row_number, record
        raise NotFoundError(record_not_found(kind.value, record_id))

    @staticmethod
    def _check_actor(actor: Actor) -> None:
        if not actor.username or not actor.username.strip():
            raise ValidationError("Actor username is required")

    def create(self, kind: RecordKind, fields: Mapping[str, Any], actor: Actor) -> Record:
        """Validate and append a new record.

        Args:
            kind: Table to append to
            fields: Editable fields of the new record
            actor: User creating the record

        Returns:
            The stored record, with its generated ID

        Raises:
            ValidationError: If the fields break a business rule
            StorageError: If the store file cannot be read or written
        """
        self._check_actor(actor)
        values = normalize_fields(kind, fields)

        def apply(rows: list) -> tuple[Record, int, Record]:
            taken = {record.id for _, record in rows}
            record_id = str(uuid.uuid4())
            while record_id in taken:
                record_id = str(uuid.uuid4())
            record = RECORD_TYPES[kind](
                id=record_id,
                created_by=actor.username,
                created_at=self._clock(),
                **values,
            )
            validate_record(record)
            next_row = max((row_number for row_number, _ in rows), default=1) + 1
            return record, next_row, record

        return self._mutate("create", kind, None, apply)

    def update(
        self, kind: RecordKind, record_id: str, fields: Mapping[str, Any], actor: Actor
    ) -> Record:
        """Merge the supplied fields into a visible record.

        Raises:
            ValidationError: If no fields are given, a field is protected or invalid
            NotFoundError: If the record does not exist or is deleted
            StorageError: If the store file cannot be read or written
        """
        self._check_actor(actor)
        if not fields:
            raise ValidationError("No fields to update")
        changes = normalize_fields(kind, fields, partial=True)

        def apply(rows: list) -> tuple[Record, int, Record]:
            row_number, current = self._find(kind, rows, record_id)
            updated = replace(
                current,
                **changes,
                modified_by=actor.username,
                modified_at=self._modified_stamp(current),
            )
            validate_record(updated)
            return updated, row_number, updated

        return self._mutate("update", kind, record_id, apply)

    def soft_delete(self, kind: RecordKind, record_id: str, actor: Actor) -> Record:
        """Mark a visible record deleted. Returns the record as it was before.

        Raises:
            NotFoundError: If the record does not exist or is already deleted
            StorageError: If the store file cannot be read or written
        """
        self._check_actor(actor)

        def apply(rows: list) -> tuple[Record, int, Record]:
            row_number, current = self._find(kind, rows, record_id)
            deleted = replace(
                current,
                deleted=True,
                modified_by=actor.username,
                modified_at=self._modified_stamp(current),
            )
            return deleted, row_number, current

        return self._mutate("delete", kind, record_id, apply)

    # Reads
    def list(
        self,
        kind: RecordKind,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
    ) -> RecordListing:
        """List visible records with an inclusive, optional date range."""
        return RecordListing(
            rows=tuple(self._read_records(kind)), from_date=from_date, to_date=to_date
        )

    def get_by_id(self, kind: RecordKind, record_id: str) -> Optional[Record]:
        """Get a visible record by ID, or None."""
        for record in self._read_records(kind):
            if record.id == record_id and not record.deleted:
                return record
        return None

    def export_snapshot(self) -> bytes:
        """Return the current store file bytes verbatim."""
        self.initialize()
        for attempt in range(1, _READ_ATTEMPTS + 1):
            try:
                return self.file_path.read_bytes()
            except PermissionError as e:
                if attempt == _READ_ATTEMPTS:
                    raise StorageError(storage_failure("export", "store file", None, e)) from e
                time.sleep(_READ_RETRY_DELAY)
            except OSError as e:
                raise StorageError(storage_failure("export", "store file", None, e)) from e
        raise AssertionError("unreachable")
