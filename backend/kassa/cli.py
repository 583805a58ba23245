# Overview: Flask CLI command groups for store maintenance and printing.

# backend/kassa/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv and `pip install -e .` from the repository root.
# - Use: flask --app kassa <group> <command> [options]
#
# Store schema:
# - flask --app kassa system upgrade [--revision head]
#   Apply pending schema revisions (also done automatically at startup).
# - flask --app kassa system revision
#   Show the schema revision the store is at.
# - flask --app kassa system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Catalog:
# - flask --app kassa products list [--all]
#   List products with barcode, price and stock.
# - flask --app kassa products ensure-barcodes
#   Generate EAN-8 barcodes for every product that has none.
#
# Printing:
# - flask --app kassa print label 12 --copies 3 [--printer label]
# - flask --app kassa print receipt 57 [--printer receipt]
# - flask --app kassa print return-receipt 4 [--printer receipt]

import click
from alembic import command
from flask import current_app
from flask.cli import with_appcontext

from .errors import KassaError
from .extensions import db, migrate
from .money import format_major, format_quantity
from .services import print_service, products_service
from .store import MIGRATIONS_DIR, run_migrations, schema_revision


def _fail(message: str):
    click.echo(f"FAIL {message}")
    raise click.exceptions.Exit(1)


@click.group('system')
def system_group():
    """Store schema and maintenance commands."""


@system_group.command('upgrade')
@click.option('--revision', default='head', show_default=True, help='Target schema revision')
@with_appcontext
def upgrade_cli(revision):
    """Upgrade the store schema (idempotent)."""
    try:
        current = run_migrations(current_app._get_current_object(), revision)
    except KassaError as e:
        _fail(str(e))
    click.echo(f"PASS Store schema at {current}")


@system_group.command('revision')
@with_appcontext
def revision_cli():
    """Show the current schema revision."""
    click.echo(schema_revision() or "<unversioned>")


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

    db.session.remove()

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    command.stamp(migrate.get_config(directory=str(MIGRATIONS_DIR)), "head")
    click.echo("PASS Database reset complete.")


@click.group('products')
def products_group():
    """Catalog inspection commands."""


@products_group.command('list')
@click.option('--all', 'show_all', is_flag=True, help='Show inactive products too')
@with_appcontext
def list_products_cli(show_all):
    products = products_service.list_products(include_inactive=show_all)
    if not products:
        click.echo("No products found.")
        return

    click.echo(f"\n{'ID':<6} {'SKU':<16} {'Barcode':<10} {'Price':>12} {'Stock':>10}  Name")
    click.echo("-" * 80)
    for p in products:
        marker = "" if p.is_active else " (inactive)"
        click.echo(
            f"{p.id:<6} {p.sku:<16} {p.barcode or '':<10} {format_major(p.price_cents):>12} "
            f"{format_quantity(p.qty):>10}  {p.name}{marker}"
        )


@products_group.command('ensure-barcodes')
@with_appcontext
def ensure_barcodes_cli():
    """Generate barcodes for products that have none."""
    try:
        assigned = products_service.ensure_missing_barcodes()
    except KassaError as e:
        _fail(str(e))
    click.echo(f"PASS Assigned {assigned} barcode(s)")


@click.group('print')
def print_group():
    """Send labels and receipts to the printer executables."""


def _report(job):
    click.echo(f"PASS Print job {job.id} {job.status.value}")


@print_group.command('label')
@click.argument('product_id', type=int)
@click.option('--copies', default=1, show_default=True, type=int)
@click.option('--printer', 'printer_name', default=None, help='Printer name (defaults to LABEL_PRINTER_NAME)')
@with_appcontext
def print_label_cli(product_id, copies, printer_name):
    try:
        _report(print_service.print_label(product_id, copies=copies, printer_name=printer_name))
    except KassaError as e:
        _fail(f"{e} {e.details or ''}".strip())


@print_group.command('receipt')
@click.argument('sale_id', type=int)
@click.option('--printer', 'printer_name', default=None, help='Printer name (defaults to RECEIPT_PRINTER_NAME)')
@with_appcontext
def print_receipt_cli(sale_id, printer_name):
    try:
        _report(print_service.print_receipt(sale_id, printer_name=printer_name))
    except KassaError as e:
        _fail(f"{e} {e.details or ''}".strip())


@print_group.command('return-receipt')
@click.argument('return_id', type=int)
@click.option('--printer', 'printer_name', default=None, help='Printer name (defaults to RECEIPT_PRINTER_NAME)')
@with_appcontext
def print_return_receipt_cli(return_id, printer_name):
    try:
        _report(print_service.print_return_receipt(return_id, printer_name=printer_name))
    except KassaError as e:
        _fail(f"{e} {e.details or ''}".strip())


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(products_group)
    app.cli.add_command(print_group)
