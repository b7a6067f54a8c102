"""chatdesk management CLI."""

import asyncio
import sys
from typing import Optional

import click
from pydantic import EmailStr, TypeAdapter, ValidationError

from auth.database import UserDatabase
from config.settings import Settings, get_settings


def run_async(coro):
    """Run an async coroutine synchronously."""
    return asyncio.run(coro)


def print_error(message: str) -> None:
    """Print an error message."""
    print(f"Error: {message}", file=sys.stderr)


def print_success(message: str) -> None:
    print(message)


def print_info(message: str) -> None:
    print(message)


def load_settings() -> Settings:
    try:
        return get_settings()
    except ValidationError as e:
        print_error(f"Invalid configuration: {e}")
        sys.exit(1)


_email_adapter = TypeAdapter(EmailStr)


def check_email(email: str) -> str:
    """Apply the same address rules as the signin routes; exits on failure."""
    try:
        return _email_adapter.validate_python(email)
    except ValidationError:
        print_error(f"Invalid admin email: {email}")
        sys.exit(1)


def _build_database(settings: Settings) -> UserDatabase:
    return UserDatabase.from_settings(settings)


async def seed_database(
    user_db: UserDatabase,
    admin_username: Optional[str],
    admin_email: Optional[str],
    admin_password: Optional[str],
) -> tuple[Optional[bool], int]:
    """
    Create the super admin and default plans if missing.
    Returns (admin created, or None when no admin was requested; plans created).
    """
    await user_db.connect()
    try:
        admin_created = None
        if admin_username and admin_email and admin_password:
            admin_created = await user_db.seed_admin(admin_username, admin_email, admin_password)
        plans_created = await user_db.seed_plans()
        return admin_created, plans_created
    finally:
        await user_db.close()


@click.group()
def cli():
    """chatdesk - auth server for the chatdesk chatbot"""


@cli.command()
@click.option("--host", default=None, help="Bind address (defaults to HOST).")
@click.option("--port", default=None, type=int, help="Port (defaults to PORT).")
@click.option("--reload", is_flag=True, help="Reload on code changes.")
def serve(host, port, reload):
    """Run the auth server."""
    import uvicorn

    settings = load_settings()
    host = host or settings.host
    port = port or settings.port
    print_info(f"Starting chatdesk on http://{host}:{port}")
    uvicorn.run("server:app", host=host, port=port, reload=reload)


@cli.command()
@click.option("--admin-username", default=None, help="Defaults to SEED_ADMIN_USERNAME.")
@click.option("--admin-email", default=None, help="Defaults to SEED_ADMIN_EMAIL.")
@click.option("--admin-password", default=None, help="Defaults to SEED_ADMIN_PASSWORD.")
def seed(admin_username, admin_email, admin_password):
    """Create the super admin and the default plans."""
    settings = load_settings()
    admin_username = admin_username or settings.seed_admin_username
    admin_email = admin_email or settings.seed_admin_email
    admin_password = admin_password or settings.seed_admin_password

    if not (admin_username and admin_email and admin_password):
        print_info("No admin credentials given, skipping admin")
    else:
        admin_email = check_email(admin_email)

    try:
        admin_created, plans_created = run_async(
            seed_database(_build_database(settings), admin_username, admin_email, admin_password)
        )
    except Exception as e:
        print_error(f"Seeding failed: {e}")
        sys.exit(1)

    if admin_created:
        print_success(f"Created super admin {admin_email}")
    elif admin_created is False:
        print_info(f"Admin {admin_email} already exists")
    print_success(f"Created {plans_created} plan(s)")


if __name__ == "__main__":
    cli()
