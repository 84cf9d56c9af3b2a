"""Flask CLI commands for bootstrapping accounts."""

from __future__ import annotations

import click
from flask.cli import with_appcontext
from sqlalchemy.exc import IntegrityError

from shopauth.core.extensions import db
from shopauth.models import User, UserRole, UserStatus
from shopauth.models.base import utcnow
from shopauth.repositories import UserRepository


@click.group("users")
def users_cli() -> None:
    """Account administration commands."""


@users_cli.command("create-superadmin")
@click.option("--email", required=True, help="Login e-mail of the super admin.")
@click.option(
    "--password",
    required=True,
    prompt=True,
    hide_input=True,
    confirmation_prompt=True,
    help="Initial password (prompted when omitted).",
)
@click.option("--full-name", default=None, help="Optional display name.")
@with_appcontext
def create_superadmin_command(email: str, password: str, full_name: str | None) -> None:
    """Create an active, verified super admin account."""
    if len(password) < 8:
        raise click.BadParameter("must be at least 8 characters", param_hint="--password")

    user = User(
        email=email,
        full_name=full_name,
        role=UserRole.SUPER_ADMIN,
        status=UserStatus.PENDING,
    )
    user.password = password
    user.mark_verified(utcnow())
    try:
        UserRepository(session=db.session).add(user)
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise click.ClickException(f"A user with e-mail {user.email} already exists.") from exc
    click.echo(f"Super admin created: id={user.id} email={user.email}")
