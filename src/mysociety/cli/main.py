"""Main CLI entry point."""

import logging

import click

from mysociety.database.factories import create_workbook_store
from mysociety.domain.entities import ROLES, Actor
from mysociety.domain.errors import StorageError
from mysociety.notifications.factories import create_dispatcher

# Import and register all commands at module level
from mysociety.cli.commands import admin, expense, payment

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@click.group()
@click.option(
    "--data-file",
    type=click.Path(dir_okay=False),
    help="Path to the workbook file (overrides MYSOCIETY_DATA_FILE environment variable)",
    envvar="MYSOCIETY_DATA_FILE",
)
@click.option(
    "--backup-dir",
    type=click.Path(file_okay=False),
    help="Directory for backups (overrides MYSOCIETY_BACKUP_DIR environment variable)",
    envvar="MYSOCIETY_BACKUP_DIR",
)
@click.option("--user", help="Authenticated username", envvar="MYSOCIETY_USER")
@click.option(
    "--role",
    type=click.Choice(ROLES),
    default="resident",
    show_default=True,
    help="Role of the authenticated user",
    envvar="MYSOCIETY_ROLE",
)
@click.option(
    "--notify",
    "notify_provider",
    help="Notification provider: mock or twilio",
    envvar="MYSOCIETY_NOTIFY_PROVIDER",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    help="Logging verbosity",
    envvar="MYSOCIETY_LOG_LEVEL",
)
@click.pass_context
def cli(
    ctx,
    data_file: str | None,
    backup_dir: str | None,
    user: str | None,
    role: str,
    notify_provider: str | None,
    log_level: str,
):
    """MySociety - Residential society ledger.

    Record expenses and payments in a shared workbook and announce every
    change on the society's messaging channel.
    """
    ctx.ensure_object(dict)
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    # Build the store and dispatcher only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        try:
            ctx.obj["store"] = create_workbook_store(data_file=data_file, backup_dir=backup_dir)
        except StorageError as e:
            click.echo(f"Error: {e}", err=True)
            ctx.exit(1)
        dispatcher = create_dispatcher(provider=notify_provider)
        ctx.obj["dispatcher"] = dispatcher
        ctx.obj["actor"] = Actor(username=user, role=role) if user else None
        # Pending notifications finish before the process exits.
        ctx.call_on_close(dispatcher.shutdown)


# Register all commands
expense.register_commands(cli)
payment.register_commands(cli)
admin.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
