# Overview: Flask CLI command groups for bootstrap, users and the master catalog.

# backend/stockcount/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (use "flask db upgrade" for migrated deployments).
#
# Users:
# - python -m flask users create --username joao --name "Joao" --unlock-code 1234
#   Create a counting user. The first user created gets id 1, the default
#   CATALOG_OWNER_USER_ID.
# - python -m flask users list
#
# Master catalog:
# - python -m flask catalog import catalogo.csv
#   Import cod_item;cod_barra;des_item rows into the catalog owner's catalog.
# - python -m flask catalog lookup 7891234567890
#   Resolve a barcode or product code the same way the scanner does.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .services import auth_service, catalog_service
from .validation import ValidationError


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created")


@click.group('users')
def users_group():
    """User management commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Login name')
@click.option('--name', prompt=True, help='Display name')
@click.option('--unlock-code', prompt=True, hide_input=True, confirmation_prompt=True, help='Unlock code')
@with_appcontext
def create_user_command(username, name, unlock_code):
    """Create a counting user."""
    try:
        user = auth_service.create_user(username, name, unlock_code)
        db.session.commit()
    except ValidationError as e:
        db.session.rollback()
        raise click.ClickException(str(e))

    click.echo(f"PASS Created user {user.username} (ID: {user.id})")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users."""
    users = db.session.query(User).order_by(User.id).all()
    if not users:
        click.echo("No users found")
        return
    for user in users:
        status = "active" if user.is_active else "inactive"
        click.echo(f"{user.id}\t{user.username}\t{user.name}\t{status}")


@click.group('catalog')
def catalog_group():
    """Master catalog commands."""


@catalog_group.command('import')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@with_appcontext
def import_catalog(path):
    """Import a semicolon-separated catalog file."""
    with open(path, encoding='utf-8-sig') as f:
        text = f.read()

    try:
        result = catalog_service.import_catalog_csv(text, catalog_service.catalog_owner_id())
        db.session.commit()
    except ValidationError as e:
        db.session.rollback()
        raise click.ClickException(str(e))

    click.echo(f"PASS Imported {result.imported} products, skipped {result.skipped} rows")
    if result.skipped_lines:
        click.echo(f"Skipped rows: {', '.join(str(n) for n in result.skipped_lines)}")


@catalog_group.command('lookup')
@click.argument('code')
@with_appcontext
def lookup_product(code):
    """Resolve a barcode or product code against the master catalog."""
    product = catalog_service.find_by_code(code, catalog_service.catalog_owner_id())
    if not product:
        raise click.ClickException(f"Product not found: {code}")
    click.echo(f"{product.code}\t{product.description}\t{', '.join(b.barcode for b in product.barcodes)}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(catalog_group)
