# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/inventory_platform/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--admin-username admin --admin-email admin@inventory.local --admin-password "Password123!"]
#   Idempotent bootstrap: creates tables and a bootstrap Admin user.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list [--all]
#   List users with role and active status.
# - python -m flask users create --username jane --email jane@example.com --password "Password123!" --role Sales
#   Create a user (prompts if options are omitted).
#
# Reports:
# - python -m flask reports low-stock
#   Print active products below their minimum stock level.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .permissions import UserRole
from .services.auth_service import (
    create_user,
    list_users,
    PasswordValidationError,
    UserConflictError,
    UserValidationError,
)
from .services import reporting_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-username', default='admin', help='Bootstrap admin username')
@click.option('--admin-email', default='admin@inventory.local', help='Bootstrap admin email')
@click.option('--admin-password', default='Password123!', help='Bootstrap admin password')
@with_appcontext
def init_system(admin_username, admin_email, admin_password):
    """
    Create all tables and a bootstrap Admin user.

    Safe to re-run: existing tables and users are left alone.

    SECURITY: Change the default password immediately in production!
    """
    click.echo("START Initializing inventory system...")

    db.create_all()
    click.echo("PASS Tables created")

    existing = db.session.query(User).filter_by(username=admin_username).first()
    if existing:
        click.echo(f"WARN  User '{admin_username}' already exists, skipping...")
        return

    try:
        user = create_user(
            username=admin_username,
            email=admin_email,
            password=admin_password,
            role=UserRole.ADMIN.value,
        )
    except (PasswordValidationError, UserValidationError, UserConflictError) as e:
        raise click.ClickException(f"Failed to create admin '{admin_username}': {e}")

    click.echo(f"PASS Created user: {user.username} ({user.email}) with role '{user.role}'")
    click.echo("\nSECURITY WARNING:")
    click.echo("   - Change the admin password immediately in production!")
    click.echo("   - Password requirements: 8+ chars, uppercase, lowercase, digit, special char")


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
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice([r.value for r in UserRole]), prompt=True, help='Role')
@with_appcontext
def create_user_cli(username, email, password, role):
    """
    Create a new user.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        user = create_user(username=username, email=email, password=password, role=role)
    except (PasswordValidationError, UserValidationError, UserConflictError) as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created user: {user.username} ({user.email}) with role '{user.role}'")


@users_group.command('list')
@click.option('--all', 'show_all', is_flag=True, help='Show inactive users too')
@with_appcontext
def list_users_cli(show_all):
    """List users sorted by role, then username."""
    users = list_users(include_inactive=show_all)

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<30} {'Role':<10} {'Active'}")
    click.echo("="*80)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {user.email:<30} {user.role:<10} {active_str}")

    click.echo("="*80 + "\n")


@click.group('reports')
def reports_group():
    """Read-only reports for the terminal."""


@reports_group.command('low-stock')
@with_appcontext
def low_stock_cli():
    """Print active products below their minimum stock level."""
    report = reporting_service.low_stock_report()

    if not report["products"]:
        click.echo("No products below minimum stock level.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'SKU':<16} {'Name':<30} {'Stock':>6} {'Min':>6}  {'Supplier'}")
    click.echo("="*80)

    for row in report["products"]:
        supplier = row["supplier"]["name"] if row["supplier"] else "-"
        click.echo(
            f"{row['sku']:<16} {row['name'][:30]:<30} {row['stock_quantity']:>6} "
            f"{row['min_stock_level']:>6}  {supplier}"
        )

    click.echo("="*80)
    click.echo(f"{report['count']} product(s) as of {report['report_date']}\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(reports_group)
