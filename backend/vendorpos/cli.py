# Overview: Flask CLI command groups for bootstrap, inspection, and ledger verification.

# backend/vendorpos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables (idempotent). Use `flask db upgrade` for migrated deployments.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Vendors:
# - python -m flask vendors list
# - python -m flask vendors create --name "Sharma Stores" --code "SHARMA" [--tax-rate-bps 500]
#
# Ledger inspection:
# - python -m flask ledger balances --vendor-id 1 [--party-type supplier] [--include-excluded]
#   Print balances recomputed from postings.
# - python -m flask ledger verify --vendor-id 1
#   Recompute stock from movements and re-add bills; exits 1 on any drift.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Vendor
from .services import balance_service
from .services.vendor_service import VendorError, create_vendor
from .services.stock_service import verify_stock_ledger
from .services.checkout_service import verify_bills


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created.")


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

    click.echo("PASS Database reset complete.")


@click.group('vendors')
def vendors_group():
    """Vendor management commands."""


@vendors_group.command('list')
@with_appcontext
def list_vendors():
    """List all vendors."""
    vendors = db.session.query(Vendor).order_by(Vendor.id).all()

    if not vendors:
        click.echo("No vendors found.")
        return

    click.echo("\n" + "="*72)
    click.echo(f"{'ID':<5} {'Name':<30} {'Code':<15} {'Active':<8} {'Next bill'}")
    click.echo("="*72)

    for vendor in vendors:
        active_str = "Yes" if vendor.is_active else "No"
        click.echo(f"{vendor.id:<5} {vendor.name:<30} {vendor.code:<15} {active_str:<8} {vendor.next_bill_number}")

    click.echo("="*72 + "\n")


@vendors_group.command('create')
@click.option('--name', required=True, help='Vendor name')
@click.option('--code', default=None, help='Short code (unique); defaults to the upper-cased name')
@click.option('--tax-rate-bps', type=int, default=None, help='Override the deployment tax rate')
@click.option('--exclude-pos-payments/--include-pos-payments', default=None,
              help='Override whether POS receipts count towards customer balances')
@with_appcontext
def create_vendor_cli(name, code, tax_rate_bps, exclude_pos_payments):
    """Create a new vendor."""
    code = code or "".join(ch for ch in name.upper() if ch.isalnum())[:32]
    try:
        vendor = create_vendor(
            name,
            code,
            tax_rate_bps=tax_rate_bps,
            exclude_pos_payments_from_balance=exclude_pos_payments,
        )
    except VendorError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)

    click.echo(f"PASS Created vendor: {vendor.name} (ID: {vendor.id}, Code: {vendor.code})")


@click.group('ledger')
def ledger_group():
    """Khata ledger inspection commands."""


@ledger_group.command('balances')
@click.option('--vendor-id', type=int, required=True)
@click.option('--party-type', type=click.Choice(list(balance_service.VALID_PARTY_TYPES)), default='customer')
@click.option('--include-excluded', is_flag=True, help='Count postings flagged exclude_from_balance')
@with_appcontext
def ledger_balances(vendor_id, party_type, include_excluded):
    """Print every party's balance recomputed from its postings."""
    items = balance_service.list_party_balances(vendor_id, party_type, include_excluded=include_excluded)
    book = balance_service.replay_balances(vendor_id, include_excluded=include_excluded)
    if not items:
        click.echo(f"No {party_type}s found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<6} {'Name':<28} {'Gave':>12} {'Got':>12} {'Balance':>12}  Label")
    click.echo("="*80)
    for row in items:
        balance = book.balance_of(party_type, row['party_id'])
        label = balance_service.balance_label(party_type, balance)
        click.echo(
            f"{row['party_id']:<6} {row['name'][:28]:<28} {row['total_gave_cents']:>12} "
            f"{row['total_got_cents']:>12} {balance:>12}  {label}"
        )
    click.echo("="*80 + "\n")


@ledger_group.command('verify')
@click.option('--vendor-id', type=int, required=True)
@with_appcontext
def ledger_verify(vendor_id):
    """Check stock against movements, bills against their parts and party balances against postings."""
    stock_problems = verify_stock_ledger(vendor_id)
    bill_problems = verify_bills(vendor_id)
    balance_problems = balance_service.verify_party_balances(vendor_id)

    for problem in stock_problems:
        click.echo(
            f"FAIL product {problem['product_id']}: stock={problem['stock']} "
            f"expected={problem['expected_stock']} chain_breaks={problem['chain_breaks']}"
        )
    for problem in bill_problems:
        click.echo(f"FAIL bill {problem['bill_number']}: {', '.join(problem['issues'])}")
    for problem in balance_problems:
        click.echo(
            f"FAIL {problem['party_type']} {problem['party_id']}: balance={problem['balance_cents']} "
            f"expected={problem['expected_balance_cents']}"
        )

    if stock_problems or bill_problems or balance_problems:
        raise SystemExit(1)
    click.echo("PASS Stock, bills and balances are consistent.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(vendors_group)
    app.cli.add_command(ledger_group)
