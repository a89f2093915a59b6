"""Business-rule validation for ledger records.

Input fields arrive already shape-checked by the caller (command line or an
HTTP layer), but the store re-checks every rule here before any storage work.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE

from mysociety.domain.entities import PAYMENT_MODES, Record, RecordKind
from mysociety.domain.errors import ValidationError, immutable_fields, unknown_fields

CENTS = Decimal("0.01")

# Workbook cells hold amounts as IEEE doubles and text up to this length.
MAX_AMOUNT_DIGITS = 15
MAX_TEXT_LENGTH = 32767

SYSTEM_FIELDS = frozenset(
    {"id", "created_by", "created_at", "modified_by", "modified_at", "deleted"}
)

EDITABLE_FIELDS = {
    RecordKind.OUTFLOW: ("description", "amount", "date", "unit_reference", "notes"),
    RecordKind.INFLOW: ("unit_reference", "amount", "date", "payment_mode", "reference_number"),
}

REQUIRED_FIELDS = {
    RecordKind.OUTFLOW: ("description", "amount", "date"),
    RecordKind.INFLOW: ("unit_reference", "amount", "date"),
}


def normalize_amount(value: Any) -> Decimal:
    """Convert an amount to a non-negative Decimal with two decimal places."""
    if isinstance(value, bool) or value is None:
        raise ValidationError("Amount must be a number")
    try:
        amount = Decimal(str(value).strip()) if not isinstance(value, Decimal) else value
    except InvalidOperation:
        raise ValidationError(f"Amount '{value}' is not a valid number")
    if not amount.is_finite():
        raise ValidationError(f"Amount '{value}' is not a valid number")
    if amount < 0:
        raise ValidationError("Amount must not be negative")
    try:
        amount = amount.quantize(CENTS)
    except InvalidOperation:
        raise ValidationError(f"Amount '{value}' is too large")
    if len(amount.normalize().as_tuple().digits) > MAX_AMOUNT_DIGITS:
        raise ValidationError(
            f"Amount '{value}' has more than {MAX_AMOUNT_DIGITS} significant digits"
        )
    return amount


def normalize_date(value: Any) -> date:
    """Convert a date, datetime or ISO string to a calendar date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            raise ValidationError(f"Date '{value}' is not a valid YYYY-MM-DD date")
    raise ValidationError("Date is required")


def _normalize_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if ILLEGAL_CHARACTERS_RE.search(text):
        raise ValidationError("Text must not contain control characters")
    if len(text) > MAX_TEXT_LENGTH:
        raise ValidationError(f"Text must not be longer than {MAX_TEXT_LENGTH} characters")
    return text or None


def _normalize_payment_mode(value: Any) -> str | None:
    text = _normalize_text(value)
    if text is None:
        return None
    for mode in PAYMENT_MODES:
        if mode.lower() == text.lower():
            return mode
    raise ValidationError(
        f"Payment mode '{text}' is not one of: {', '.join(PAYMENT_MODES)}"
    )


def check_field_names(kind: RecordKind, fields: Mapping[str, Any]) -> None:
    """Reject system-managed and unknown field names."""
    protected = [name for name in fields if name in SYSTEM_FIELDS]
    if protected:
        raise ValidationError(immutable_fields(protected))
    unknown = [name for name in fields if name not in EDITABLE_FIELDS[kind]]
    if unknown:
        raise ValidationError(unknown_fields(kind.value, unknown))


def normalize_fields(
    kind: RecordKind, fields: Mapping[str, Any], partial: bool = False
) -> dict[str, Any]:
    """Validate and normalise caller-supplied fields for a record kind.

    Args:
        kind: Record kind the fields belong to
        fields: Field name to raw value mapping
        partial: If True, only the supplied fields are checked (update);
            otherwise every required field must be present (create)

    Returns:
        Dict of normalised values, containing only the supplied fields

    Raises:
        ValidationError: If a field is protected, unknown or invalid
    """
    check_field_names(kind, fields)

    if not partial:
        missing = [
            name for name in REQUIRED_FIELDS[kind] if _normalize_text(fields.get(name)) is None
        ]
        if missing:
            raise ValidationError(f"Missing required field(s): {', '.join(missing)}")

    normalized: dict[str, Any] = {}
    for name, value in fields.items():
        if name == "amount":
            normalized[name] = normalize_amount(value)
        elif name == "date":
            normalized[name] = normalize_date(value)
        elif name == "payment_mode":
            normalized[name] = _normalize_payment_mode(value)
        else:
            text = _normalize_text(value)
            if text is None and name in REQUIRED_FIELDS[kind]:
                raise ValidationError(f"Field '{name}' must not be empty")
            normalized[name] = text
    return normalized


def validate_record(record: Record) -> None:
    """Check that a complete record satisfies the data model."""
    kind = record.kind
    for name in REQUIRED_FIELDS[kind]:
        if getattr(record, name) in (None, ""):
            raise ValidationError(f"Missing required field: {name}")
    if record.amount < 0:
        raise ValidationError("Amount must not be negative")
    if record.modified_at is not None and record.modified_at < record.created_at:
        raise ValidationError("modified_at must not precede created_at")
    if kind is RecordKind.INFLOW and record.payment_mode is not None:
        _normalize_payment_mode(record.payment_mode)
