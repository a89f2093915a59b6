"""Mapper functions to convert between domain entities and worksheet rows.

This layer isolates cell encoding: the workbook keeps dates as ISO text and
timestamps as ISO-8601 text so that the file reads the same in any
spreadsheet tool, while the domain works with ``date``, ``datetime`` and
``Decimal`` values.
"""

from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any

from mysociety.domain import entities as domain
from mysociety.domain.entities import RecordKind
from mysociety.domain.validation import CENTS

TRUE_STRINGS = frozenset({"true", "1", "yes"})


def _decode_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


def _decode_amount(value: Any) -> Decimal:
    if value is None:
        raise ValueError("amount cell is empty")
    return Decimal(str(value)).quantize(CENTS)


def _decode_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value.strip())
    raise ValueError(f"date cell holds {value!r}")


def _decode_timestamp(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value.strip())
    if not isinstance(value, datetime):
        raise ValueError(f"timestamp cell holds {value!r}")
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value


def _decode_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in TRUE_STRINGS
    return bool(value)


def row_to_domain(kind: RecordKind, values: tuple, index: dict[str, int]) -> domain.Record:
    """Convert one worksheet row to a domain record.

    Args:
        kind: Table the row belongs to
        values: Cell values of the row, in sheet column order
        index: Column name to slot mapping from the header row

    Raises:
        ValueError: If a cell cannot be decoded
    """

    def cell(name: str) -> Any:
        slot = index[name]
        return values[slot] if slot < len(values) else None

    common = dict(
        id=_decode_text(cell("id")),
        amount=_decode_amount(cell("amount")),
        date=_decode_date(cell("date")),
        created_by=_decode_text(cell("created_by")),
        created_at=_decode_timestamp(cell("created_at")),
        modified_by=_decode_text(cell("modified_by")),
        modified_at=_decode_timestamp(cell("modified_at")),
        deleted=_decode_flag(cell("deleted")),
        unit_reference=_decode_text(cell("unit_reference")),
    )
    if common["id"] is None:
        raise ValueError("id cell is empty")

    if kind is RecordKind.OUTFLOW:
        return domain.OutflowRecord(
            description=_decode_text(cell("description")),
            notes=_decode_text(cell("notes")),
            **common,
        )
    return domain.InflowRecord(
        payment_mode=_decode_text(cell("payment_mode")),
        reference_number=_decode_text(cell("reference_number")),
        **common,
    )


def domain_to_cells(record: domain.Record) -> dict[str, Any]:
    """Convert a domain record to a column name to cell value mapping."""
    cells: dict[str, Any] = {
        "id": record.id,
        "amount": record.amount,
        "date": record.date.isoformat(),
        "unit_reference": record.unit_reference,
        "created_by": record.created_by,
        "created_at": record.created_at.isoformat(),
        "modified_by": record.modified_by,
        "modified_at": record.modified_at.isoformat() if record.modified_at else None,
        "deleted": record.deleted,
    }
    if isinstance(record, domain.OutflowRecord):
        cells["description"] = record.description
        cells["notes"] = record.notes
    else:
        cells["payment_mode"] = record.payment_mode
        cells["reference_number"] = record.reference_number
    return cells
