# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/chargesafe/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Shop (tenant) management:
# - python -m flask shops list
#   List all shops with device and slot counts.
# - python -m flask shops create --email owner@shop.test --password "Password123!" --name "Corner Charge"
#   Create a shop account (prompts if options are omitted).
#
# Slot stickers:
# - python -m flask slots labels --shop-id 1 --start SLOT-01 --count 20 [--register]
#   Print a batch of sticker labels, optionally claiming them for the shop.
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions --retention-days 30
#   Delete expired or revoked session tokens older than the retention window.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Shop, Device, SlotBinding
from .models.devices import ACTIVE_STATUSES
from .services import auth_service
from .services import session_service
from .services import slot_service
from .validation import ValidationError, ConflictError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


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

    click.echo("PASS Database reset complete. Run 'python -m flask shops create' to add a shop.")


@click.group('shops')
def shops_group():
    """Shop (tenant) management commands."""


@shops_group.command('list')
@with_appcontext
def list_shops():
    """List all shops."""
    shops = db.session.query(Shop).order_by(Shop.id).all()

    if not shops:
        click.echo("No shops found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Name':<28} {'Email':<30} {'Active':<8} {'Devices':<8} {'Slots'}")
    click.echo("="*90)

    for shop in shops:
        active_devices = (
            db.session.query(Device)
            .filter(Device.shop_id == shop.id, Device.status.in_(ACTIVE_STATUSES))
            .count()
        )
        slot_count = db.session.query(SlotBinding).filter_by(owner_shop_id=shop.id).count()
        active_str = "Yes" if shop.is_active else "No"

        click.echo(f"{shop.id:<5} {shop.shop_name:<28} {shop.email:<30} {active_str:<8} {active_devices:<8} {slot_count}")

    click.echo("="*90 + "\n")


@shops_group.command('create')
@click.option('--email', prompt=True, help='Owner email (login)')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Owner password')
@click.option('--name', 'shop_name', prompt=True, help='Shop name')
@click.option('--city', default=None, help='City')
@click.option('--currency', default=None, help='NGN, USD, GHS or KES')
@with_appcontext
def create_shop_cli(email, password, shop_name, city, currency):
    """Create a new shop account."""
    try:
        shop = auth_service.register_shop(
            email=email,
            password=password,
            shop_name=shop_name,
            city=city,
            currency=currency,
        )
    except (ValidationError, ConflictError) as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Created shop: {shop.shop_name} (ID: {shop.id}, Email: {shop.email})")


@click.group('slots')
def slots_group():
    """Slot sticker commands."""


@slots_group.command('labels')
@click.option('--shop-id', type=int, required=True, help='Shop ID')
@click.option('--start', required=True, help='First label, e.g. SLOT-01')
@click.option('--count', type=int, default=10, show_default=True)
@click.option('--register', is_flag=True, help='Claim the labels for the shop')
@with_appcontext
def slot_labels_cli(shop_id, start, count, register):
    """Print a batch of consecutive slot labels."""
    try:
        labels = slot_service.slot_label_batch(start, count)
        if register:
            if not db.session.get(Shop, shop_id):
                click.echo(f"FAIL Shop {shop_id} not found")
                return
            slot_service.register_slots(shop_id, labels)
    except (ValidationError, ConflictError) as e:
        click.echo(f"FAIL {e}")
        return

    for label in labels:
        click.echo(label)
    if register:
        click.echo(f"PASS Registered {len(labels)} slots for shop {shop_id}")


@click.group('maintenance')
def maintenance_group():
    """Operational maintenance commands."""


@maintenance_group.command('cleanup-sessions')
@click.option('--retention-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_sessions_cli(retention_days):
    """
    Cleanup expired and revoked session tokens.

    Default retention: 30 days.
    """
    deleted = session_service.cleanup_expired_sessions(retention_days=retention_days)
    click.echo(f"Deleted {deleted} sessions older than {retention_days} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(shops_group)
    app.cli.add_command(slots_group)
    app.cli.add_command(maintenance_group)
