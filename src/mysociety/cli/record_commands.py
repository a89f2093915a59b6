"""Shared command bodies for the expense and payment groups.

Mutating commands follow the same sequence: run the store operation, print
the result, then hand the record to the dispatcher in the background. The
notification outcome is only logged.
"""

import logging
from typing import Any

import click

from mysociety.cli.actor_resolution import require_actor
from mysociety.cli.date_filters import resolve_cli_date_range
from mysociety.cli.error_handling import handle_domain_error
from mysociety.domain.entities import InflowRecord, Record, RecordKind
from mysociety.domain.errors import DomainError, NotFoundError, StorageError
from mysociety.notifications.formatting import format_amount
from mysociety.utils.amount_parser import parse_amount
from mysociety.utils.date_parser import parse_date

logger = logging.getLogger(__name__)


def collect_fields(ctx: click.Context, raw: dict[str, Any]) -> dict[str, Any]:
    """Parse CLI strings into store fields, skipping options that were not given."""
    fields: dict[str, Any] = {}
    for name, value in raw.items():
        if value is None:
            continue
        if name == "amount":
            try:
                value = parse_amount(value)
            except ValueError as e:
                click.echo(f"Error: Invalid amount format: {e}", err=True)
                ctx.exit(1)
        elif name == "date":
            try:
                value = parse_date(value)
            except ValueError as e:
                click.echo(f"Error: Invalid date format: {e}", err=True)
                ctx.exit(1)
        fields[name] = value
    return fields


def _announce(ctx: click.Context, kind: RecordKind, action: str, record: Record) -> None:
    dispatcher = ctx.obj.get("dispatcher")
    if dispatcher is None:
        return
    dispatcher.notify_in_background(kind, action, record, ctx.obj["actor"])


def echo_record(record: Record) -> None:
    """Print every field of one record."""
    click.echo(f"  ID: {record.id}")
    click.echo(f"  Date: {record.date}")
    click.echo(f"  Amount: {format_amount(record.amount)}")
    if isinstance(record, InflowRecord):
        click.echo(f"  Unit: {record.unit_reference}")
        if record.payment_mode:
            click.echo(f"  Mode: {record.payment_mode}")
        if record.reference_number:
            click.echo(f"  Reference: {record.reference_number}")
    else:
        click.echo(f"  Description: {record.description}")
        if record.unit_reference:
            click.echo(f"  Unit: {record.unit_reference}")
        if record.notes:
            click.echo(f"  Notes: {record.notes}")
    click.echo(f"  Created: {record.created_at:%Y-%m-%d %H:%M} by {record.created_by}")
    if record.modified_at is not None:
        click.echo(f"  Modified: {record.modified_at:%Y-%m-%d %H:%M} by {record.modified_by}")


def run_create(ctx: click.Context, kind: RecordKind, raw: dict[str, Any]) -> None:
    actor = require_actor(ctx)
    fields = collect_fields(ctx, raw)
    try:
        record = ctx.obj["store"].create(kind, fields, actor)
    except (DomainError, StorageError) as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Created {kind.label.lower()} {record.id}")
    echo_record(record)
    _announce(ctx, kind, "created", record)


def run_update(ctx: click.Context, kind: RecordKind, record_id: str, raw: dict[str, Any]) -> None:
    actor = require_actor(ctx)
    fields = collect_fields(ctx, raw)
    if not fields:
        click.echo("Error: Nothing to update. Pass at least one field option.", err=True)
        ctx.exit(1)
    try:
        record = ctx.obj["store"].update(kind, record_id, fields, actor)
    except (DomainError, StorageError) as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Updated {kind.label.lower()} {record.id}")
    echo_record(record)
    _announce(ctx, kind, "updated", record)


def run_delete(ctx: click.Context, kind: RecordKind, record_id: str, yes: bool) -> None:
    actor = require_actor(ctx)
    store = ctx.obj["store"]

    try:
        current = store.get_by_id(kind, record_id)
    except StorageError as e:
        handle_domain_error(ctx, e)
        return
    if current is None:
        click.echo(f"Error: {kind.label} {record_id} not found", err=True)
        ctx.exit(1)

    if not yes and not click.confirm(
        f"Are you sure you want to delete {kind.label.lower()} {record_id}?"
    ):
        click.echo("Deletion cancelled.")
        return

    try:
        record = store.soft_delete(kind, record_id, actor)
    except (DomainError, StorageError) as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Deleted {kind.label.lower()} {record.id}")
    _announce(ctx, kind, "deleted", record)


def run_show(ctx: click.Context, kind: RecordKind, record_id: str) -> None:
    try:
        record = ctx.obj["store"].get_by_id(kind, record_id)
    except StorageError as e:
        handle_domain_error(ctx, e)
        return
    if record is None:
        handle_domain_error(ctx, NotFoundError(f"{kind.label} {record_id} not found"))
        return
    click.echo(f"{kind.label} {record.id}")
    echo_record(record)


def run_list(
    ctx: click.Context,
    kind: RecordKind,
    from_date: str | None,
    to_date: str | None,
    period_flags: dict[str, bool],
) -> None:
    start, end = resolve_cli_date_range(
        ctx, from_date=from_date, to_date=to_date, period_flags=period_flags
    )
    try:
        records = ctx.obj["store"].list(kind, from_date=start, to_date=end)
    except StorageError as e:
        handle_domain_error(ctx, e)
        return

    count = len(records)
    if not count:
        click.echo(f"No {kind.label.lower()}s found.")
        return

    click.echo(f"\nFound {count} {kind.label.lower()}(s):")
    click.echo("-" * 100)
    if kind is RecordKind.OUTFLOW:
        click.echo(f"{'ID':<10} {'Date':<12} {'Amount':>14}  {'Unit':<10} {'Description':<40}")
    else:
        click.echo(f"{'ID':<10} {'Date':<12} {'Amount':>14}  {'Unit':<10} {'Mode':<8} {'Reference':<20}")
    click.echo("-" * 100)

    for record in records:
        amount_str = format_amount(record.amount)
        unit = (record.unit_reference or "")[:10]
        if kind is RecordKind.OUTFLOW:
            description = (record.description or "")[:40]
            click.echo(
                f"{record.id[:8]:<10} {str(record.date):<12} {amount_str:>14}  {unit:<10} {description:<40}"
            )
        else:
            click.echo(
                f"{record.id[:8]:<10} {str(record.date):<12} {amount_str:>14}  {unit:<10} "
                f"{record.payment_mode or '':<8} {(record.reference_number or '')[:20]:<20}"
            )

    click.echo("-" * 100)
    click.echo(f"{'TOTAL':<10} {'':<12} {format_amount(records.total()):>14}  Count: {count}")
