"""Flask CLI commands for session maintenance."""

from __future__ import annotations

import logging

import click
from flask.cli import with_appcontext

from shopauth.services.container import get_session_manager

LOGGER = logging.getLogger(__name__)


@click.group("sessions")
def sessions_cli() -> None:
    """Inspect and maintain refresh-token sessions."""


@sessions_cli.command("purge-expired")
@with_appcontext
def purge_expired_command() -> None:
    """Deactivate sessions still marked active past their expiry."""
    count = get_session_manager().expire_stale()
    LOGGER.info("purge-expired flipped %d session(s)", count)
    click.echo(f"Expired sessions deactivated: {count}")


@sessions_cli.command("list")
@click.argument("user_id")
@with_appcontext
def list_command(user_id: str) -> None:
    """List the active sessions of USER_ID, newest first."""
    records = get_session_manager().list_active(user_id)
    if not records:
        click.echo("  (no active sessions)")
        return
    for rec in records:
        click.echo(
            f"  {rec.session_id}  created={rec.created_at.isoformat()}"
            f"  expires={rec.expires_at.isoformat()}  ip={rec.ip}  device={rec.device}"
        )
