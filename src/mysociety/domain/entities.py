"""Domain model entities for mysociety.

These are pure data classes representing ledger concepts, independent of the
workbook layout. The persistence layer converts sheet rows to and from these
entities through ``mysociety.database.mappers``.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Iterator, Optional, Union


class RecordKind(str, Enum):
    """The two ledger tables kept in the store file."""

    OUTFLOW = "outflow"
    INFLOW = "inflow"

    @property
    def sheet_name(self) -> str:
        """Worksheet holding this kind of record."""
        return "Expenses" if self is RecordKind.OUTFLOW else "Payments"

    @property
    def label(self) -> str:
        """Human-facing name used in messages."""
        return "Expense" if self is RecordKind.OUTFLOW else "Payment"


ROLES = ("admin", "treasurer", "resident")
ADMIN_ROLES = ("admin", "treasurer")

PAYMENT_MODES = ("Cash", "Cheque", "Online")


@dataclass(frozen=True)
class Actor:
    """Authenticated user performing an operation."""

    username: str
    role: str = "resident"

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


@dataclass(frozen=True)
class OutflowRecord:
    """Expense paid out by the society."""

    id: str
    description: str
    amount: Decimal
    date: date
    created_by: str
    created_at: datetime
    unit_reference: Optional[str] = None
    notes: Optional[str] = None
    modified_by: Optional[str] = None
    modified_at: Optional[datetime] = None
    deleted: bool = False

    kind = RecordKind.OUTFLOW


@dataclass(frozen=True)
class InflowRecord:
    """Payment received from a unit."""

    id: str
    unit_reference: str
    amount: Decimal
    date: date
    created_by: str
    created_at: datetime
    payment_mode: Optional[str] = None
    reference_number: Optional[str] = None
    modified_by: Optional[str] = None
    modified_at: Optional[datetime] = None
    deleted: bool = False

    kind = RecordKind.INFLOW


Record = Union[OutflowRecord, InflowRecord]

RECORD_TYPES = {
    RecordKind.OUTFLOW: OutflowRecord,
    RecordKind.INFLOW: InflowRecord,
}


@dataclass(frozen=True)
class RecordListing:
    """Visible records of one table, filtered by an inclusive date range.

    Holds a single snapshot of the table rows and filters them lazily on
    every iteration, so a listing can be iterated any number of times with
    the same result.
    """

    rows: tuple = field(repr=False)
    from_date: Optional[date] = None
    to_date: Optional[date] = None

    def __iter__(self) -> Iterator[Record]:
        for record in self.rows:
            if record.deleted:
                continue
            if self.from_date is not None and record.date < self.from_date:
                continue
            if self.to_date is not None and record.date > self.to_date:
                continue
            yield record

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def __bool__(self) -> bool:
        return any(True for _ in self)

    def total(self) -> Decimal:
        """Sum of the amounts of the listed records."""
        return sum((record.amount for record in self), Decimal("0"))
