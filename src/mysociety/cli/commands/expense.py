"""Expense (outflow record) commands."""

import click

from mysociety.cli.record_commands import run_create, run_delete, run_list, run_show, run_update
from mysociety.domain.entities import RecordKind


@click.group()
def expense_group():
    """Record and manage society expenses."""
    pass


@expense_group.command("add")
@click.option("--description", required=True, help="What the money was spent on")
@click.option("--amount", required=True, help="Amount paid (e.g., 1500 or 1,500.00)")
@click.option("--date", required=True, help="Expense date (YYYY-MM-DD, DD/MM/YYYY or 'today')")
@click.option("--unit", "unit_reference", help="Unit the expense relates to")
@click.option("--notes", help="Notes")
@click.pass_context
def add_expense(ctx, description: str, amount: str, date: str, unit_reference: str | None, notes: str | None):
    """Add an expense.

    Examples:
        mysociety --user admin expense add --description Gardener --amount 1500 --date 2024-03-01
    """
    run_create(
        ctx,
        RecordKind.OUTFLOW,
        {
            "description": description,
            "amount": amount,
            "date": date,
            "unit_reference": unit_reference,
            "notes": notes,
        },
    )


@expense_group.command("list")
@click.option("--from", "from_date", help="Earliest date, inclusive")
@click.option("--to", "to_date", help="Latest date, inclusive")
@click.option("--this-month", is_flag=True, help="Only this month")
@click.option("--last-month", is_flag=True, help="Only last month")
@click.option("--this-year", is_flag=True, help="Only this year")
@click.pass_context
def list_expenses(ctx, from_date, to_date, this_month, last_month, this_year):
    """List expenses in entry order."""
    run_list(
        ctx,
        RecordKind.OUTFLOW,
        from_date,
        to_date,
        {"this-month": this_month, "last-month": last_month, "this-year": this_year},
    )


@expense_group.command("show")
@click.argument("record_id")
@click.pass_context
def show_expense(ctx, record_id: str):
    """Show one expense."""
    run_show(ctx, RecordKind.OUTFLOW, record_id)


@expense_group.command("update")
@click.argument("record_id")
@click.option("--description", help="New description")
@click.option("--amount", help="New amount")
@click.option("--date", help="New date")
@click.option("--unit", "unit_reference", help="New unit")
@click.option("--notes", help="New notes")
@click.pass_context
def update_expense(ctx, record_id: str, **fields):
    """Update an expense.

    Updates only the fields that are provided.

    Examples:
        mysociety --user treasurer expense update 3f2a... --amount 1800
    """
    run_update(ctx, RecordKind.OUTFLOW, record_id, fields)


@expense_group.command("delete")
@click.argument("record_id")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete_expense(ctx, record_id: str, yes: bool):
    """Delete an expense. The row stays in the workbook, marked deleted."""
    run_delete(ctx, RecordKind.OUTFLOW, record_id, yes)


def register_commands(cli: click.Group) -> None:
    """Register expense commands with main CLI."""
    cli.add_command(expense_group, name="expense")
