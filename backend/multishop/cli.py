# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/multishop/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables (no data).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users create-admin --email admin@shop.local --password "Password123!"
#   Create an admin account and its user record (prompts if options are omitted).
# - python -m flask users list [--role manager] [--shop-id <id>]
#
# Inventory:
# - python -m flask inventory low-stock [--shop-id <id>]
#   List records at or below their low-stock threshold.

import click
from flask.cli import with_appcontext

from .errors import MultishopError
from .extensions import db
from .models.auth import ROLE_ADMIN
from .services import identity_service, inventory_service, record_store


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created")


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
    click.echo("PASS Database reset")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create-admin')
@click.option('--email', prompt=True, help='Login email')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--name', default='Administrator', help='Display name')
@with_appcontext
def create_admin(email, password, name):
    """Create an admin account and its user record."""
    try:
        account_id = identity_service.create_account(email, password)
        record_store.create(
            "users",
            id=account_id,
            email=identity_service.normalize_email(email),
            name=name,
            role=ROLE_ADMIN,
        )
    except MultishopError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Created admin {email} (ID: {account_id})")


@users_group.command('list')
@click.option('--role', default=None, help='Filter by role')
@click.option('--shop-id', default=None, help='Filter by shop')
@with_appcontext
def list_users(role, shop_id):
    where = {}
    if role:
        where["role"] = role
    if shop_id:
        where["shop_id"] = shop_id
    users = record_store.query("users", where=where or None, order_by="created_at")
    if not users:
        click.echo("No users found")
        return
    for user in users:
        click.echo(f"{user.id}  {user.role:<8}  {user.email}  shop={user.shop_id or '-'}")


@click.group('inventory')
def inventory_group():
    """Inventory inspection commands."""


@inventory_group.command('low-stock')
@click.option('--shop-id', default=None, help='Restrict to one shop')
@with_appcontext
def low_stock(shop_id):
    """List inventory records at or below their low-stock threshold."""
    records = inventory_service.low_stock_records(shop_id)
    if not records:
        click.echo("PASS No low stock records")
        return
    for record in records:
        product = record_store.find("products", record.product_id)
        name = product.name if product is not None else "Unknown Product"
        status = inventory_service.stock_status(record)
        click.echo(
            f"WARN  {record.shop_id}  {name}: {record.current_stock} "
            f"(threshold {record.low_stock_threshold}, {status})"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(inventory_group)
