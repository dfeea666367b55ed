# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/stockdesk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates missing tables, the default category and the default admin.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all users with role and active status.
# - python -m flask users create --username jdoe --email jdoe@example.com --name John --surname Doe --role CLIENT_ROLE
#   Create a user (prompts if options are omitted).
#
# Catalog inspection:
# - python -m flask products low-stock
#   List active products at or below their min_stock.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import User, ADMIN_ROLE, ROLES
from .services.auth_service import create_user, PasswordValidationError
from .services.category_service import ensure_default_category
from .services.products_service import list_low_stock


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize the store: schema, default category and default admin.

    The admin credentials come from DEFAULT_ADMIN_USERNAME,
    DEFAULT_ADMIN_EMAIL and DEFAULT_ADMIN_PASSWORD.

    SECURITY: Change the admin password immediately in production!
    """
    click.echo("START Initializing StockDesk...")

    db.create_all()
    click.echo("PASS Schema ready")

    category = ensure_default_category()
    db.session.commit()
    click.echo(f"PASS Default category: {category.name} (ID: {category.id})")

    cfg = current_app.config
    existing = db.session.query(User).filter_by(role=ADMIN_ROLE).first()
    if existing:
        click.echo(f"WARN  Admin '{existing.username}' already exists, skipping...")
    else:
        try:
            admin = create_user(
                name="Admin",
                surname="StockDesk",
                username=cfg["DEFAULT_ADMIN_USERNAME"],
                email=cfg["DEFAULT_ADMIN_EMAIL"],
                password=cfg["DEFAULT_ADMIN_PASSWORD"],
                role=ADMIN_ROLE,
            )
            click.echo(f"PASS Created admin: {admin.username} ({admin.email})")
        except (PasswordValidationError, ValueError) as e:
            click.echo(f"FAIL Failed to create admin: {str(e)}")
            return

    click.echo("\n" + "="*60)
    click.echo("DONE StockDesk Initialized Successfully!")
    click.echo("="*60)
    click.echo("\nSECURITY WARNING: change the default admin password in production!")


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
    """User management commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--name', prompt=True, help='First name')
@click.option('--surname', prompt=True, help='Last name')
@click.option('--phone', default=None, help='Phone number (digits only)')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ROLES)), prompt=True, help='Role')
@with_appcontext
def create_user_cli(username, email, name, surname, phone, password, role):
    """
    Create a new user interactively.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        user = create_user(
            name=name,
            surname=surname,
            username=username,
            email=email,
            phone=phone,
            password=password,
            role=role,
        )
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        return
    except ValueError as e:
        click.echo(f"FAIL {str(e)}")
        return

    click.echo(f"PASS Created user: {user.username} ({user.email}) with role '{user.role}'")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<30} {'Active':<8} {'Role'}")
    click.echo("="*90)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {user.email:<30} {active_str:<8} {user.role}")

    click.echo("="*90 + "\n")


@click.group('products')
def products_group():
    """Catalog inspection commands."""


@products_group.command('low-stock')
@with_appcontext
def low_stock():
    """List active products whose stock is at or below min_stock."""
    products = list_low_stock()

    if not products:
        click.echo("PASS No products below minimum stock.")
        return

    click.echo("\n" + "="*70)
    click.echo(f"{'ID':<5} {'Name':<40} {'Stock':<8} {'Min'}")
    click.echo("="*70)
    for p in products:
        click.echo(f"{p['id']:<5} {p['name'][:40]:<40} {p['stock']:<8} {p['min_stock']}")
    click.echo("="*70 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(products_group)
