"""Flask CLI commands for account bootstrap and store maintenance."""

from __future__ import annotations

import logging

import click
from flask.cli import with_appcontext
from sqlalchemy.exc import IntegrityError

from sessionkeeper.container import get_container
from sessionkeeper.models.user import User
from sessionkeeper.services.auth.permissions import ROLE_PERMISSIONS
from sessionkeeper.uow import SQLAlchemyUnitOfWork

LOGGER = logging.getLogger(__name__)

ROLE_CHOICES = sorted({*ROLE_PERMISSIONS, "user"})


@click.group("users")
def users_cli() -> None:
    """User account commands."""


@users_cli.command("create")
@click.argument("email")
@click.option("--role", type=click.Choice(ROLE_CHOICES), default="user", show_default=True)
@click.option("--inactive", is_flag=True, help="Create the account disabled.")
@click.password_option()
@with_appcontext
def create_user(email: str, role: str, inactive: bool, password: str) -> None:
    """Create an account that can log in with EMAIL and the prompted password."""
    try:
        with SQLAlchemyUnitOfWork() as uow:
            if uow.users.exists_by_email(email):
                raise click.UsageError(f"A user with email {email!r} already exists.")
            user = User(email=email, role=role, is_active=not inactive)
            user.password = password
            uow.users.add(user)
            user_id = user.id
    except (IntegrityError, ValueError) as exc:
        raise click.ClickException(str(exc)) from exc
    LOGGER.info("User created", extra={"event": "user_created", "user_id": user_id})
    click.echo(f"Created user {user_id} ({email}, role={role}).")


@click.group("sessions")
def sessions_cli() -> None:
    """Session store maintenance commands."""


@sessions_cli.command("sweep")
@with_appcontext
def sweep() -> None:
    """Purge expired sessions and revocations from stores without native TTL."""
    swept_sessions, swept_revocations = get_container().sweep()
    LOGGER.info(
        "Expired entries swept",
        extra={"event": "sweep", "count": swept_sessions + swept_revocations},
    )
    click.echo(f"Swept {swept_sessions} sessions and {swept_revocations} revocations.")
