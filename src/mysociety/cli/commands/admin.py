"""Store file administration commands (admin and treasurer only)."""

from pathlib import Path

import click

from mysociety.cli.actor_resolution import require_admin
from mysociety.cli.error_handling import handle_domain_error
from mysociety.domain.errors import StorageError


@click.group()
def admin_group():
    """Export, back up and inspect the store file."""
    pass


@admin_group.command("export")
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, writable=True),
    required=True,
    help="Where to write the workbook copy",
)
@click.pass_context
def export_file(ctx, output: str):
    """Download the current workbook, byte for byte."""
    require_admin(ctx)
    try:
        data = ctx.obj["store"].export_snapshot()
    except StorageError as e:
        handle_domain_error(ctx, e)
        return
    Path(output).write_bytes(data)
    click.echo(f"Exported {len(data)} bytes to {output}")


@admin_group.command("backup")
@click.pass_context
def create_backup(ctx):
    """Take a backup of the workbook now."""
    require_admin(ctx)
    try:
        backup_path = ctx.obj["store"].create_backup()
    except StorageError as e:
        handle_domain_error(ctx, e)
        return
    if backup_path is None:
        click.echo("Error: No file to backup", err=True)
        ctx.exit(1)
    click.echo(f"Backup created: {backup_path}")


@admin_group.command("backups")
@click.pass_context
def list_backups(ctx):
    """List backups, newest first."""
    require_admin(ctx)
    backups = ctx.obj["store"].list_backups()
    if not backups:
        click.echo("No backups found.")
        return
    for path in backups:
        click.echo(f"{path.name}  {path}")


def register_commands(cli: click.Group) -> None:
    """Register admin commands with main CLI."""
    cli.add_command(admin_group, name="admin")
