"""Payment (inflow record) commands."""

import click

from mysociety.cli.record_commands import run_create, run_delete, run_list, run_show, run_update
from mysociety.domain.entities import PAYMENT_MODES, RecordKind

mode_choice = click.Choice(PAYMENT_MODES, case_sensitive=False)


@click.group()
def payment_group():
    """Record and manage payments received from units."""
    pass


@payment_group.command("add")
@click.option("--unit", "unit_reference", required=True, help="Paying unit (e.g., A-101)")
@click.option("--amount", required=True, help="Amount received")
@click.option("--date", required=True, help="Payment date (YYYY-MM-DD, DD/MM/YYYY or 'today')")
@click.option("--mode", "payment_mode", type=mode_choice, help="Payment mode")
@click.option("--reference", "reference_number", help="Cheque or transaction reference")
@click.pass_context
def add_payment(ctx, unit_reference: str, amount: str, date: str, payment_mode, reference_number):
    """Add a payment.

    Examples:
        mysociety --user treasurer payment add --unit A-101 --amount 2500 --date today --mode Online
    """
    run_create(
        ctx,
        RecordKind.INFLOW,
        {
            "unit_reference": unit_reference,
            "amount": amount,
            "date": date,
            "payment_mode": payment_mode,
            "reference_number": reference_number,
        },
    )


@payment_group.command("list")
@click.option("--from", "from_date", help="Earliest date, inclusive")
@click.option("--to", "to_date", help="Latest date, inclusive")
@click.option("--this-month", is_flag=True, help="Only this month")
@click.option("--last-month", is_flag=True, help="Only last month")
@click.option("--this-year", is_flag=True, help="Only this year")
@click.pass_context
def list_payments(ctx, from_date, to_date, this_month, last_month, this_year):
    """List payments in entry order."""
    run_list(
        ctx,
        RecordKind.INFLOW,
        from_date,
        to_date,
        {"this-month": this_month, "last-month": last_month, "this-year": this_year},
    )


@payment_group.command("show")
@click.argument("record_id")
@click.pass_context
def show_payment(ctx, record_id: str):
    """Show one payment."""
    run_show(ctx, RecordKind.INFLOW, record_id)


@payment_group.command("update")
@click.argument("record_id")
@click.option("--unit", "unit_reference", help="New unit")
@click.option("--amount", help="New amount")
@click.option("--date", help="New date")
@click.option("--mode", "payment_mode", type=mode_choice, help="New payment mode")
@click.option("--reference", "reference_number", help="New reference")
@click.pass_context
def update_payment(ctx, record_id: str, **fields):
    """Update a payment. Updates only the fields that are provided."""
    run_update(ctx, RecordKind.INFLOW, record_id, fields)


@payment_group.command("delete")
@click.argument("record_id")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete_payment(ctx, record_id: str, yes: bool):
    """Delete a payment. The row stays in the workbook, marked deleted."""
    run_delete(ctx, RecordKind.INFLOW, record_id, yes)


def register_commands(cli: click.Group) -> None:
    """Register payment commands with main CLI."""
    cli.add_command(payment_group, name="payment")
