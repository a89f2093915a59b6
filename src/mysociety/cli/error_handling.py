"""CLI error handling helpers."""

import click

from mysociety.domain.errors import DomainError, NotificationError, StorageError


def handle_domain_error(
    ctx: click.Context, error: DomainError | StorageError | NotificationError | ValueError
) -> None:
    """Render a domain or storage error and exit with failure."""
    click.echo(f"Error: {error}", err=True)
    ctx.exit(1)
