"""Human-readable notification lines for ledger mutations."""

from datetime import date
from decimal import Decimal

from mysociety.domain.entities import Actor, Record, RecordKind
from mysociety.domain.errors import ValidationError

CURRENCY_SYMBOL = "₹"

ACTIONS = ("created", "updated", "deleted")


def format_amount(amount: Decimal) -> str:
    """Format an amount with thousands separators and the currency symbol."""
    return f"{CURRENCY_SYMBOL}{amount:,.2f}"


def format_date(value: date) -> str:
    """Format a date as DD/MM/YYYY."""
    return value.strftime("%d/%m/%Y")


def _actor_name(actor: Actor | str) -> str:
    return actor.username if isinstance(actor, Actor) else str(actor)


def _expense_message(action: str, record: Record, username: str) -> str:
    amount = format_amount(record.amount)
    when = format_date(record.date)
    unit = f" (Unit {record.unit_reference})" if record.unit_reference else ""
    short_id = record.id[:8]

    if action == "created":
        return f"[Expense Added] {amount} - {record.description} on {when}{unit} (by {username})."
    if action == "updated":
        return (
            f"[Expense Updated] ID {short_id} - {record.description} - {amount} "
            f"on {when}{unit} (by {username})."
        )
    return f"[Expense Deleted] ID {short_id} - {record.description} - {amount} (by {username})."


def _payment_message(action: str, record: Record, username: str) -> str:
    amount = format_amount(record.amount)
    when = format_date(record.date)
    mode = f" ({record.payment_mode})" if record.payment_mode else ""
    ref = f" Ref: {record.reference_number}" if record.reference_number else ""

    if action == "created":
        return (
            f"[Payment Received] Unit {record.unit_reference} - {amount} "
            f"on {when}{mode}{ref} (by {username})."
        )
    if action == "updated":
        return (
            f"[Payment Updated] Unit {record.unit_reference} - {amount} "
            f"on {when}{mode}{ref} (by {username})."
        )
    return f"[Payment Deleted] Unit {record.unit_reference} - {amount} on {when} (by {username})."


def format_message(
    kind: RecordKind | str, action: str, record: Record, actor: Actor | str
) -> str:
    """Build the notification line for one mutation.

    Args:
        kind: ``outflow`` or ``inflow``
        action: ``created``, ``updated`` or ``deleted``
        record: Record as returned by the store operation
        actor: User who performed the mutation, or their username

    Raises:
        ValidationError: If kind or action is not recognised
    """
    try:
        kind = RecordKind(kind)
    except ValueError:
        raise ValidationError(f"Unknown record kind '{kind}'")
    if action not in ACTIONS:
        raise ValidationError(f"Unknown action '{action}'. Expected one of: {', '.join(ACTIONS)}")

    username = _actor_name(actor)
    if kind is RecordKind.OUTFLOW:
        return _expense_message(action, record, username)
    return _payment_message(action, record, username)
