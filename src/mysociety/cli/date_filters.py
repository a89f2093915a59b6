"""CLI helpers for date range resolution."""

from datetime import date

import click

from mysociety.utils.date_parser import get_date_range, parse_date


def resolve_cli_date_range(
    ctx,
    *,
    from_date: str | None,
    to_date: str | None,
    period_flags: dict[str, bool],
) -> tuple[date | None, date | None]:
    """Resolve CLI date range from period flags or explicit dates."""
    chosen = [period for period, is_set in period_flags.items() if is_set]

    if len(chosen) > 1:
        click.echo(
            "Error: Only one period option (--this-month, --last-month, --this-year) can be specified at a time.",
            err=True,
        )
        ctx.exit(1)

    if chosen and (from_date or to_date):
        click.echo(
            "Error: Period options cannot be combined with --from or --to.",
            err=True,
        )
        ctx.exit(1)

    if chosen:
        return get_date_range(chosen[0])

    start = None
    end = None
    if from_date:
        try:
            start = parse_date(from_date)
        except ValueError as e:
            click.echo(f"Error: Invalid from date: {e}", err=True)
            ctx.exit(1)

    if to_date:
        try:
            end = parse_date(to_date)
        except ValueError as e:
            click.echo(f"Error: Invalid to date: {e}", err=True)
            ctx.exit(1)

    return start, end
