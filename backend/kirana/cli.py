# Overview: Flask CLI command groups for bootstrap, inspection, and stock maintenance.

# backend/kirana/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to kirana (PowerShell: $env:FLASK_APP="kirana").
# - Use: python -m flask <group> <command> [options]
#
# Store bootstrap/repair:
# - python -m flask store init-db
#   Create missing tables and stamp the schema version (idempotent).
# - python -m flask store reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask store seed
#   Insert demo vendors, a customer and two items (only into an empty item table).
# - python -m flask store info
#   Show database location, schema version and row counts.
#
# Inventory:
# - python -m flask items list [--low-stock]
#   List active items (optionally only those at or below their reorder point).
# - python -m flask items adjust 3 -2
#   Change stock of item 3 by a signed delta.
#
# Parties / ledger:
# - python -m flask parties list [--type CUSTOMER|VENDOR]
# - python -m flask transactions list [--limit 20]
# - python -m flask reminders list
#   List pending reminders by due time.

import click
from flask.cli import with_appcontext
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from . import get_store, schema
from .errors import StoreError
from .extensions import db
from .models import PartyType
from .services import queries
from .services.inventory_service import add_item, adjust_stock
from .services.party_service import add_customer, add_vendor, adjust_balance
from .time_utils import format_display_time, from_millis


@click.group('store')
def store_group():
    """Database bootstrap and repair commands."""


@store_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables and stamp the schema version."""
    try:
        schema.ensure_schema(db.engine)
    except StoreError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)
    click.echo(f"PASS Schema ready (version {schema.SCHEMA_VERSION})")


@store_group.command('reset-db')
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
    schema.drop_schema(db.engine)

    click.echo("BUILD  Creating all tables...")
    schema.ensure_schema(db.engine)

    click.echo("PASS Database reset complete. Run 'python -m flask store seed' for demo data.")


@store_group.command('seed')
@with_appcontext
def seed():
    """
    Insert demo data for a fresh install.

    Skipped entirely when any item already exists, so it is safe to re-run.
    """
    store = get_store()
    existing = store.fetch(queries.active_items())
    if existing:
        click.echo(f"SKIP {len(existing)} items already present; nothing seeded.")
        return

    hul = add_vendor(store, name="Hindustan Unilever", phone="9876543210", gst_number="27AAACH1234A1Z5")
    adjust_balance(store, party_id=hul, delta=-12000.0)
    itc = add_vendor(store, name="ITC Limited", phone="9876543211")
    sharma = add_customer(store, name="Sharma Ji", phone="9988776655")
    adjust_balance(store, party_id=sharma, delta=2500.0)
    click.echo(f"PASS Created vendors {hul}, {itc} and customer {sharma}")

    dal = add_item(
        store,
        name="Toor Dal Premium", price=150.0, cost_price=120.0, stock=45,
        category="Staples", rack_location="Rack A1", barcode="8901234567890",
        reorder_point=10, vendor_id=itc,
    )
    oil = add_item(
        store,
        name="Fortune Sun Oil 1L", price=155.0, cost_price=135.0, stock=5,
        category="Oil", rack_location="Rack B2", gst_percentage=5.0,
        barcode="8901234567891", reorder_point=10, vendor_id=hul,
    )
    click.echo(f"PASS Created items {dal}, {oil}")


@store_group.command('info')
@with_appcontext
def info():
    """Show database location, schema version and row counts."""
    click.echo(f"Database: {db.engine.url.render_as_string(hide_password=True)}")
    click.echo(f"Schema version: {schema.read_schema_version(db.engine)} (expected {schema.SCHEMA_VERSION})")
    with db.engine.connect() as conn:
        for name in sorted(schema.ALL_TABLES):
            t = schema.table(name)
            try:
                total = conn.execute(select(func.count()).select_from(t)).scalar()
            except OperationalError:
                total = "missing"
            click.echo(f"  {name:<20} {total}")


@click.group('items')
def items_group():
    """Inventory inspection and stock adjustments."""


@items_group.command('list')
@click.option('--low-stock', is_flag=True, help='Only items at or below their reorder point')
@with_appcontext
def list_items(low_stock):
    """
    List active items.

    Example:
        flask items list
        flask items list --low-stock
    """
    store = get_store()
    items = store.fetch(queries.low_stock_items() if low_stock else queries.active_items())

    if not items:
        click.echo("No items found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Name':<30} {'Category':<12} {'Price':>10} {'Stock':>7} {'Reorder':>8}  {'Rack'}")
    click.echo("="*90)
    for item in items:
        rack = item["rack_location"] or "-"
        click.echo(
            f"{item['id']:<5} {item['name']:<30} {item['category']:<12} "
            f"{item['price']:>10.2f} {item['stock']:>7} {item['reorder_point']:>8}  {rack}"
        )
    click.echo("="*90 + "\n")


@items_group.command('adjust')
@click.argument('item_id', type=int)
@click.argument('delta', type=int)
@with_appcontext
def adjust_item_stock(item_id, delta):
    """
    Change stock by a signed delta.

    Example:
        flask items adjust 3 24
        flask items adjust 3 -- -2
    """
    store = get_store()
    try:
        adjust_stock(store, item_id=item_id, delta=delta)
    except StoreError as e:
        click.echo(f"FAIL Error: {str(e)}")
        raise SystemExit(1)

    item = store.fetch(queries.item_by_id(item_id))
    click.echo(f"PASS {item['name']}: stock now {item['stock']}")


@click.group('parties')
def parties_group():
    """Customer and vendor inspection."""


@parties_group.command('list')
@click.option('--type', 'party_type', type=click.Choice(list(PartyType.ALL)), help='Filter by party type')
@with_appcontext
def list_parties(party_type):
    """List parties with their running balance."""
    store = get_store()
    if party_type == PartyType.CUSTOMER:
        parties = store.fetch(queries.customers())
    elif party_type == PartyType.VENDOR:
        parties = store.fetch(queries.vendors())
    else:
        parties = store.fetch(queries.all_parties())

    if not parties:
        click.echo("No parties found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Name':<30} {'Type':<10} {'Phone':<14} {'Balance':>12}")
    click.echo("="*80)
    for party in parties:
        click.echo(
            f"{party['id']:<5} {party['name']:<30} {party['type']:<10} "
            f"{party['phone']:<14} {party['balance']:>12.2f}"
        )
    click.echo("="*80 + "\n")


@click.group('transactions')
def transactions_group():
    """Ledger inspection."""


@transactions_group.command('list')
@click.option('--limit', type=int, default=20, help='Max transactions to show')
@with_appcontext
def list_transactions(limit):
    """List the most recent transactions, newest first."""
    store = get_store()
    transactions = store.fetch(queries.all_transactions(limit=limit))

    if not transactions:
        click.echo("No transactions found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<5} {'Date':<12} {'Time':<9} {'Type':<9} {'Mode':<7} {'Amount':>10}  {'Title'}")
    click.echo("="*100)
    for tx in transactions:
        day = from_millis(tx["date"]).strftime("%Y-%m-%d")
        click.echo(
            f"{tx['id']:<5} {day:<12} {tx['time']:<9} {tx['type']:<9} "
            f"{tx['payment_mode']:<7} {tx['amount']:>10.2f}  {tx['title']}"
        )
    click.echo("="*100 + "\n")


@click.group('reminders')
def reminders_group():
    """Reminder inspection."""


@reminders_group.command('list')
@with_appcontext
def list_reminders():
    """List pending reminders by due time."""
    store = get_store()
    reminders = store.fetch(queries.active_reminders())

    if not reminders:
        click.echo("No pending reminders.")
        return

    for reminder in reminders:
        due = from_millis(reminder["due_at"]).strftime("%Y-%m-%d")
        ref = f"{reminder['type']}#{reminder['ref_id']}" if reminder["ref_id"] is not None else reminder["type"]
        click.echo(f"[{reminder['id']}] {due} {format_display_time(reminder['due_at'])}  {reminder['title']}  ({ref})")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(store_group)
    app.cli.add_command(items_group)
    app.cli.add_command(parties_group)
    app.cli.add_command(transactions_group)
    app.cli.add_command(reminders_group)
