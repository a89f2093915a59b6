"""Worksheet layout of the store file."""

from mysociety.domain.entities import RecordKind

COLUMNS = {
    RecordKind.OUTFLOW: (
        "id",
        "description",
        "amount",
        "date",
        "unit_reference",
        "created_by",
        "created_at",
        "modified_by",
        "modified_at",
        "deleted",
        "notes",
    ),
    RecordKind.INFLOW: (
        "id",
        "unit_reference",
        "amount",
        "date",
        "payment_mode",
        "created_by",
        "created_at",
        "modified_by",
        "modified_at",
        "deleted",
        "reference_number",
    ),
}

# Display widths applied when a new workbook is created.
COLUMN_WIDTHS = {
    "id": 38,
    "description": 40,
    "notes": 30,
    "amount": 15,
    "date": 12,
    "unit_reference": 14,
    "payment_mode": 15,
    "reference_number": 20,
    "created_by": 20,
    "modified_by": 20,
    "created_at": 32,
    "modified_at": 32,
    "deleted": 10,
}


def header_index(kind: RecordKind, header: list) -> dict[str, int]:
    """Map column names to zero-based slots from a sheet's header row.

    Raises:
        KeyError: If a column of the fixed schema is missing
    """
    index = {str(name).strip(): slot for slot, name in enumerate(header) if name is not None}
    missing = [name for name in COLUMNS[kind] if name not in index]
    if missing:
        raise KeyError(f"{kind.sheet_name} sheet is missing column(s): {', '.join(missing)}")
    return index
