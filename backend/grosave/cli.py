# Overview: Flask CLI command groups for bootstrap, slot provisioning, and maintenance.

# backend/grosave/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Create any missing tables and print the active economy settings.
# - python -m flask system seed-demo [--days 3]
#   Idempotent demo data: one pickup hub, its slots, and a few near-expiry products.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Pickup slots:
# - python -m flask slots provision --days 7 [--start 2025-01-31] [--capacity 20] [--location-id 1]
#   Pre-create morning/afternoon/evening slots. Existing slots keep their capacity.
# - python -m flask slots list --location-id 1 --date 2025-01-31
#   Show capacity and reservations for one location and day.
#
# Wallets:
# - python -m flask wallets refill-due
#   Credit the monthly allocation to every wallet past its refill date.
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions --retention-days 30
#   Delete expired or revoked sessions older than the retention window.
# - python -m flask maintenance deactivate-expired
#   Hide products whose expiry date has passed.

import click
from datetime import timedelta
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import Product, PickupLocation
from .models.catalog import SLOT_IDS, SLOT_LABELS
from .services import maintenance_service
from .services import slot_service
from .time_utils import utcnow, parse_calendar_day


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize the GroSave database.

    Creates missing tables (use `flask db upgrade` for managed schemas) and
    prints the economy settings the app will run with.
    """
    click.echo("START Initializing GroSave...")
    db.create_all()
    click.echo("PASS Tables ready")

    cfg = current_app.config
    click.echo(f"\nMonthly allocation:   {cfg['MONTHLY_COIN_ALLOCATION']} coins")
    click.echo(f"Bonus ceiling:        {cfg['MAX_BONUS_COINS_PER_MONTH']} coins/month")
    click.echo(f"Default slot size:    {cfg['DEFAULT_SLOT_CAPACITY']} units")
    click.echo(f"OTP lifetime:         {cfg['OTP_TTL_SECONDS']}s (echoed: {cfg['EXPOSE_OTP']})")
    click.echo(f"Idempotency key:      {'required' if cfg['REQUIRE_IDEMPOTENCY_KEY'] else 'optional'}")
    click.echo("\nNext: python -m flask system seed-demo")


DEMO_HUB = {
    "name": "Malleswaram Kirana Hub",
    "address": "Shop 12, Malleswaram Main Road",
    "city": "Bangalore",
    "pincode": "560003",
    "latitude": 13.0038,
    "longitude": 77.5712,
}

# (name, brand, category, price, original, units, days to expiry, expiry status)
DEMO_PRODUCTS = [
    ("Organic Whole Milk", "Happy Farms", "Dairy", 50, 200, 23, 4, "warning"),
    ("Whole Wheat Bread", "Daily Bake", "Bakery", 20, 45, 12, 2, "critical"),
    ("Greek Yogurt", "Happy Farms", "Dairy", 35, 90, 18, 5, "warning"),
    ("Baby Spinach", "Green Leaf", "Vegetables", 15, 40, 30, 1, "critical"),
    ("Basmati Rice 1kg", "Royal Grain", "Staples", 80, 140, 40, 20, "fresh"),
]


@system_group.command('seed-demo')
@click.option('--days', type=int, default=3, show_default=True, help='Days of slots to provision from today')
@with_appcontext
def seed_demo(days):
    """
    Seed demo data. Safe to run repeatedly.

    Creates:
    - One pickup hub (with the legacy timeSlots list)
    - Morning/afternoon/evening slots for the next `days` days
    - A handful of near-expiry products (skipped if present by name)
    """
    click.echo("START Seeding demo data...")

    hub = db.session.query(PickupLocation).filter_by(name=DEMO_HUB["name"]).first()
    if not hub:
        hub = PickupLocation(
            **DEMO_HUB,
            time_slots=[
                {"id": slot, "label": SLOT_LABELS[slot].split(" (")[0],
                 "time": SLOT_LABELS[slot].split(" (")[1].rstrip(")"),
                 "available": current_app.config["DEFAULT_SLOT_CAPACITY"]}
                for slot in SLOT_IDS
            ],
            is_active=True,
        )
        db.session.add(hub)
        db.session.commit()
        click.echo(f"PASS Created pickup location: {hub.name} (ID: {hub.id})")
    else:
        click.echo(f"PASS Using existing pickup location: {hub.name} (ID: {hub.id})")

    created = slot_service.provision_days(start=utcnow().date(), days=days, location_id=hub.id)
    click.echo(f"PASS Provisioned {created} slot(s)")

    now = utcnow()
    added = 0
    for name, brand, category, price, original, units, expiry_days, status in DEMO_PRODUCTS:
        if db.session.query(Product).filter_by(name=name).first():
            continue
        db.session.add(Product(
            name=name,
            brand=brand,
            category=category,
            current_price=price,
            original_price=original,
            discount=round(100 * (original - price) / original),
            expiry_status=status,
            expiry_date=now + timedelta(days=expiry_days),
            units_available=units,
            is_active=True,
            dynamic_pricing_enabled=expiry_days <= 5,
            drop_to_price_at_hours_before_expiry=24 if expiry_days <= 5 else None,
            free_at_hours_before_expiry=6 if expiry_days <= 5 else None,
        ))
        added += 1
    db.session.commit()
    click.echo(f"PASS Added {added} product(s)")
    click.echo("DONE Demo data ready")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system seed-demo' for demo data.")


@click.group('slots')
def slots_group():
    """Pickup slot provisioning."""


def _parse_day(ctx, param, value):
    if value is None:
        return None
    try:
        return parse_calendar_day(value)
    except ValueError:
        raise click.BadParameter("expected YYYY-MM-DD")


@slots_group.command('provision')
@click.option('--start', callback=_parse_day, help='First day (YYYY-MM-DD), defaults to today')
@click.option('--days', type=click.IntRange(min=1), default=7, show_default=True)
@click.option('--capacity', type=click.IntRange(min=0), help='Capacity for new slots (defaults to DEFAULT_SLOT_CAPACITY)')
@click.option('--location-id', type=int, help='Only this location')
@with_appcontext
def provision_slots_cli(start, days, capacity, location_id):
    """Create missing slots ahead of time. Existing slots are left untouched."""
    start = start or utcnow().date()
    created = slot_service.provision_days(start=start, days=days, capacity=capacity, location_id=location_id)
    click.echo(f"PASS Provisioned {created} slot(s) from {start.isoformat()} for {days} day(s)")


@slots_group.command('list')
@click.option('--location-id', type=int, required=True)
@click.option('--date', 'day', callback=_parse_day, required=True, help='YYYY-MM-DD')
@with_appcontext
def list_slots_cli(location_id, day):
    """Show capacity usage for one location and day."""
    slots = slot_service.list_slots(location_id, day)
    if not slots:
        click.echo("No slots provisioned.")
        return

    click.echo(f"\n{'ID':<6} {'Slot':<10} {'Reserved':<10} {'Capacity':<10} Label")
    click.echo("-" * 70)
    for s in slots:
        click.echo(f"{s.id:<6} {s.slot:<10} {s.reserved_count:<10} {s.capacity:<10} {s.label}")
    click.echo("")


@click.group('wallets')
def wallets_group():
    """GroCoin wallet jobs."""


@wallets_group.command('refill-due')
@with_appcontext
def refill_due_cli():
    """Credit the monthly allocation to wallets whose refill date has passed."""
    count = maintenance_service.refill_wallets()
    click.echo(f"Refilled {count} wallet(s).")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-sessions')
@click.option('--retention-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_sessions_cli(retention_days):
    """
    Cleanup old sessions.

    Default retention: 30 days.
    """
    deleted = maintenance_service.cleanup_sessions(retention_days=retention_days)
    click.echo(f"Deleted {deleted} sessions older than {retention_days} days.")


@maintenance_group.command('deactivate-expired')
@with_appcontext
def deactivate_expired_cli():
    """Hide products whose expiry date has passed."""
    count = maintenance_service.deactivate_expired()
    click.echo(f"Deactivated {count} expired product(s).")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(slots_group)
    app.cli.add_command(wallets_group)
    app.cli.add_command(maintenance_group)
