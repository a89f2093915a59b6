"""CLI helpers for resolving the acting user."""

from __future__ import annotations

import click

from mysociety.domain.entities import Actor


def require_actor(ctx: click.Context) -> Actor:
    """Return the authenticated actor, or exit with a CLI error.

    The identity comes from ``--user``/``--role`` (or MYSOCIETY_USER and
    MYSOCIETY_ROLE), set by whatever authenticated the session.
    """
    actor = ctx.obj.get("actor")
    if actor is None:
        click.echo("Error: No user given. Pass --user or set MYSOCIETY_USER.", err=True)
        ctx.exit(1)
    return actor


def require_admin(ctx: click.Context) -> Actor:
    """Return the actor if they hold an admin or treasurer role, else exit."""
    actor = require_actor(ctx)
    if not actor.is_admin:
        click.echo(
            f"Error: Forbidden: role '{actor.role}' cannot use admin commands", err=True
        )
        ctx.exit(1)
    return actor
