# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/eventstock/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init --email admin@example.com --password "..."
#   Create missing tables and the first admin account (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
#   List all users with role, active status and assigned projects.
# - python -m flask users create --email seller@example.com --password "..." --role seller
#   Create a user (prompts if options are omitted).

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .services.user_service import create_user
from .validation import SellerInput, ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--email', prompt=True, help='Admin email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Admin password')
@with_appcontext
def init_system(email, password):
    """
    Create missing tables and the first admin account.

    Safe to run twice: an existing account with the same email is left alone.
    """
    click.echo("START Initializing eventstock...")
    db.create_all()
    click.echo("PASS Tables ready")

    try:
        data = SellerInput.from_payload({"email": email, "password": password, "role": "admin"})
        if db.session.query(User.id).filter_by(email=data.email).first():
            click.echo(f"WARN  User '{data.email}' already exists, skipping...")
            return
        user = create_user(data)
        click.echo(f"PASS Created admin: {user.email} (ID: {user.id})")
    except ValidationError as e:
        click.echo(f"FAIL {e}")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("DONE Database reset. Run 'python -m flask system init' to create an admin.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(['admin', 'seller']), default='seller', show_default=True, help='Role')
@with_appcontext
def create_user_cli(email, password, role):
    """Create a new user. Password: 8+ characters."""
    try:
        user = create_user(SellerInput.from_payload({"email": email, "password": password, "role": role}))
        click.echo(f"PASS Created user: {user.email} with role '{user.role}'")
    except ValidationError as e:
        click.echo(f"FAIL Failed to create user: {e}")


@users_group.command('list')
@with_appcontext
def list_users_cli():
    """List all users with role, active status and assigned projects."""
    users = db.session.query(User).order_by(User.id.asc()).all()
    if not users:
        click.echo("No users found.")
        return

    for user in users:
        status = "active" if user.is_active else "inactive"
        projects = ", ".join(str(a.project_id) for a in user.assignments) or "-"
        click.echo(f"{user.id:>4}  {user.email:<40} {user.role:<7} {status:<8} projects: {projects}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
