"""Abstract store interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from pathlib import Path
from typing import Any, Mapping, Optional

# Import entities directly to avoid circular import through domain/__init__.py
from mysociety.domain.entities import Actor, Record, RecordKind, RecordListing


class Store(ABC):
    """Abstract ledger store holding the outflow and inflow tables."""

    @abstractmethod
    def initialize(self) -> None:
        """Create the store file with empty tables if it does not exist."""
        pass

    # Record operations
    @abstractmethod
    def create(self, kind: RecordKind, fields: Mapping[str, Any], actor: Actor) -> Record:
        """Validate and append a new record. Returns the stored record."""
        pass

    @abstractmethod
    def list(
        self,
        kind: RecordKind,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
    ) -> RecordListing:
        """List visible records with an inclusive, optional date range."""
        pass

    @abstractmethod
    def get_by_id(self, kind: RecordKind, record_id: str) -> Optional[Record]:
        """Get a visible record by ID, or None."""
        pass

    @abstractmethod
    def update(
        self, kind: RecordKind, record_id: str, fields: Mapping[str, Any], actor: Actor
    ) -> Record:
        """Merge the supplied fields into a visible record. Returns the updated record."""
        pass

    @abstractmethod
    def soft_delete(self, kind: RecordKind, record_id: str, actor: Actor) -> Record:
        """Mark a visible record deleted. Returns the record as it was before."""
        pass

    # File operations
    @abstractmethod
    def export_snapshot(self) -> bytes:
        """Return the current store file bytes."""
        pass

    @abstractmethod
    def create_backup(self) -> Optional[Path]:
        """Copy the store file to the backup directory. None if there is no file yet."""
        pass

    @abstractmethod
    def list_backups(self) -> list[Path]:
        """List backup files, newest first."""
        pass
