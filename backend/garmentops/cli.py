# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/garmentops/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables and the default admin / manager / staff users.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all users with role and active status.
# - python -m flask users create --username somchai --role manager --full-name "Somchai K."
#   Create a user (prompts if options are omitted).
#
# Stock inspection:
# - python -m flask stock low
#   List active products at or under their minimum stock.

import click
from flask.cli import with_appcontext
from sqlalchemy.exc import IntegrityError

from .extensions import db
from .models import User
from .models.auth import USER_ROLES
from .services import stock_service


DEFAULT_USERS = (
    ("admin", "admin@garmentops.local", "Administrator", "admin"),
    ("manager", "manager@garmentops.local", "Production Manager", "manager"),
    ("staff", "staff@garmentops.local", "Floor Staff", "staff"),
)


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize GarmentOps: create missing tables and default users.

    Safe to run repeatedly; existing users are left untouched.
    """
    click.echo("START Initializing GarmentOps...")

    db.create_all()
    click.echo("PASS Schema ready")

    for username, email, full_name, role in DEFAULT_USERS:
        existing = db.session.query(User).filter_by(username=username).first()
        if existing:
            click.echo(f"PASS Using existing user: {username} (ID: {existing.id})")
            continue
        user = User(username=username, email=email, full_name=full_name, role=role, is_active=True)
        db.session.add(user)
        db.session.commit()
        click.echo(f"PASS Created user: {username} ({role}) ID: {user.id}")

    click.echo("DONE Send the user ID in the X-Actor-Id header to attribute API calls.")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', default=None, help='Email address')
@click.option('--full-name', default=None, help='Display name')
@click.option('--role', type=click.Choice(list(USER_ROLES)), prompt=True, help='Role')
@with_appcontext
def create_user_cli(username, email, full_name, role):
    """Create a new user."""
    username = username.strip()
    if not username:
        click.echo("FAIL Username is required")
        return

    user = User(username=username, email=email, full_name=full_name, role=role, is_active=True)
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        click.echo(f"FAIL User '{username}' already exists")
        return

    click.echo(f"PASS Created user: {username} with role '{role}' (ID: {user.id})")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<30} {'Role':<10} {'Active'}")
    click.echo("="*90)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {(user.email or '-'):<30} {user.role:<10} {active_str}")

    click.echo("="*90 + "\n")


@click.group('stock')
def stock_group():
    """Stock inspection commands."""


@stock_group.command('low')
@with_appcontext
def low_stock_cli():
    """List active products at or under their minimum stock level."""
    products = stock_service.list_low_stock_products()

    if not products:
        click.echo("No low stock products.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'SKU':<20} {'Name':<35} {'Stock':>8} {'Min':>8}")
    click.echo("="*80)
    for p in products:
        click.echo(f"{p.sku:<20} {p.name[:35]:<35} {p.stock_qty:>8} {p.min_stock:>8}")
    click.echo("="*80 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(stock_group)
