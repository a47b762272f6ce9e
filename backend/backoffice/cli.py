# Overview: Flask CLI command groups for bootstrap and ledger maintenance.

# backend/backoffice/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables and seeds the default expense categories.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Ledger inspection:
# - python -m flask ledger verify [--item-id 12]
#   Report items whose current_stock disagrees with their last ledger entry.
# - python -m flask ledger history --item-id 12 --limit 20
#   Print the newest ledger entries for one item.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Item
from .services.expense_service import ensure_default_expense_categories
from .services.ledger_service import LedgerFilter, query_entries, verify_item_consistency


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Create the schema (if missing) and seed expense categories.

    The "Stock Purchase" category is required for stock receipts to book
    their expense row.
    """
    click.echo("START Initializing back-office ledger...")

    db.create_all()
    click.echo("PASS Tables ready")

    created = ensure_default_expense_categories()
    click.echo(f"PASS Expense categories seeded ({created} new)")


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


@click.group('ledger')
def ledger_group():
    """Inventory ledger inspection commands."""


@ledger_group.command('verify')
@click.option('--item-id', type=int, default=None, help='Check a single item')
@with_appcontext
def verify_ledger(item_id):
    """
    Compare every item's current_stock with its newest ledger snapshot.

    Exits with status 1 when any item is inconsistent.
    """
    query = db.session.query(Item).order_by(Item.id.asc())
    if item_id is not None:
        query = query.filter(Item.id == item_id)
    items = query.all()

    if not items:
        click.echo("No items found")
        return

    mismatches = []
    for item in items:
        report = verify_item_consistency(item)
        if not report["consistent"]:
            mismatches.append(report)

    if not mismatches:
        click.echo(f"PASS {len(items)} items consistent with the ledger")
        return

    click.echo(f"FAIL {len(mismatches)} of {len(items)} items disagree with the ledger:")
    for r in mismatches:
        click.echo(
            f"  item {r['item_id']} ({r['sku']}): current_stock={r['current_stock']} "
            f"ledger={r['ledger_stock']}"
        )
    raise SystemExit(1)


@ledger_group.command('history')
@click.option('--item-id', type=int, required=True)
@click.option('--limit', type=int, default=20, show_default=True)
@with_appcontext
def ledger_history(item_id, limit):
    """Print the newest ledger entries for one item."""
    entries = query_entries(LedgerFilter(item_id=item_id, limit=limit))
    if not entries:
        click.echo("No ledger entries")
        return

    click.echo(f"{'ID':<6} {'When':<20} {'Type':<11} {'Qty':>6} {'Prev':>6} {'New':>6}  Reason")
    click.echo("-" * 80)
    for e in entries:
        click.echo(
            f"{e.id:<6} {e.created_at:%Y-%m-%d %H:%M:%S}  {e.type:<11} {e.quantity:>6} "
            f"{e.previous_stock:>6} {e.new_stock:>6}  {e.reason or ''}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(ledger_group)
