# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/partspos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Schema:
# - python -m flask db upgrade
#   Apply migrations (preferred for persistent databases).
# - python -m flask system init-db
#   Create any missing tables directly from the models (dev shortcut).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Demo data:
# - python -m flask system seed-demo
#   Idempotent: demo categories, products with opening stock, customers and an
#   unreceived supplier invoice. Opening stock is written as Adjustment entries.
#
# Ledger inspection:
# - python -m flask ledger reconcile
#   Compare product stock with the latest ledger entry; exits 1 on drift.
# - python -m flask ledger list --product-id P123 --limit 20
#   Print recent ledger entries, newest first.

import click
from datetime import timedelta
from flask.cli import with_appcontext

from .extensions import db
from .models import Category, Customer, Product, PurchaseInvoice
from .models.purchasing import PAYMENT_TERMS_CREDIT
from .services.inventory_service import adjust_stock
from .services.ledger_service import find_ledger_drift, list_inventory_transactions
from .services.receive_service import create_purchase_invoice
from .time_utils import to_utc_z, utcnow


DEMO_CATEGORIES = ["Brakes", "Filters", "Electrical"]

# (code, name, brand, category, cost_cents, price_cents, min_stock, opening_stock)
DEMO_PRODUCTS = [
    ("BRK-PAD-001", "Front brake pads", "Bosch", "Brakes", 1850, 3200, 4, 12),
    ("BRK-DSC-002", "Brake disc 280mm", "Brembo", "Brakes", 4200, 6900, 2, 6),
    ("FLT-OIL-010", "Oil filter", "Mann", "Filters", 450, 990, 10, 40),
    ("FLT-AIR-011", "Air filter", "Mann", "Filters", 780, 1490, 5, 3),
    ("ELC-BAT-100", "Battery 60Ah", "Varta", "Electrical", 6800, 10900, 2, 0),
]

# (identification_number, name, credit_limit_cents)
DEMO_CUSTOMERS = [
    ("DEMO-0001", "Walk-in Workshop", None),
    ("DEMO-0002", "Taller Central", 50000),
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Tables created.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA, including the inventory ledger!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system seed-demo' for demo data.")


@system_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """
    Seed a small parts-store dataset so a fresh environment is immediately usable.

    Safe to rerun: records use deterministic codes/numbers and are skipped
    when they already exist.
    """
    created_counts = {"categories": 0, "products": 0, "adjustments": 0, "customers": 0, "invoices": 0}

    categories = {}
    for name in DEMO_CATEGORIES:
        category = db.session.query(Category).filter_by(name=name).first()
        if not category:
            category = Category(name=name)
            db.session.add(category)
            created_counts["categories"] += 1
        categories[name] = category
    db.session.commit()

    new_products = []
    for code, name, brand, category, cost, price, min_stock, opening in DEMO_PRODUCTS:
        if db.session.query(Product).filter_by(code=code).first():
            continue
        product = Product(
            code=code,
            name=name,
            brand=brand,
            category_id=categories[category].id,
            cost_cents=cost,
            price_cents=price,
            min_stock=min_stock,
            stock=0,
        )
        db.session.add(product)
        new_products.append((product, opening))
        created_counts["products"] += 1
    db.session.commit()

    # Opening stock goes through the ledger like any other count
    for product, opening in new_products:
        if opening:
            adjust_stock(product_id=product.id, new_physical_count=opening, notes="Opening stock (demo seed).")
            created_counts["adjustments"] += 1

    for identification_number, name, credit_limit in DEMO_CUSTOMERS:
        if db.session.query(Customer).filter_by(identification_number=identification_number).first():
            continue
        db.session.add(Customer(
            identification_number=identification_number,
            name=name,
            credit_limit_cents=credit_limit,
        ))
        created_counts["customers"] += 1
    db.session.commit()

    if not db.session.query(PurchaseInvoice).filter_by(invoice_number="DEMO-INV-001").first():
        create_purchase_invoice(
            invoice_number="DEMO-INV-001",
            invoice_date=(utcnow() - timedelta(days=1)).date(),
            supplier_name="Demo Parts Supplier",
            total_amount_cents=48000,
            payment_terms=PAYMENT_TERMS_CREDIT,
        )
        created_counts["invoices"] += 1

    for key, count in created_counts.items():
        click.echo(f"PASS {key}: {count} created")


@click.group('ledger')
def ledger_group():
    """Inventory ledger inspection commands."""


@ledger_group.command('reconcile')
@with_appcontext
def reconcile_cli():
    """Report stock counters that disagree with the ledger. Exits 1 on drift."""
    drift = find_ledger_drift()
    mismatches = drift["stock_mismatches"]
    broken = drift["arithmetic_errors"]

    if not mismatches and not broken:
        click.echo("PASS Stock counters match the inventory ledger.")
        return

    for row in mismatches:
        click.echo(
            f"FAIL Product {row['product_id']}: stock={row['stock']} "
            f"ledger={row['ledger_stock_after']} (entry {row['transaction_id']})"
        )
    for tx_id in broken:
        click.echo(f"FAIL Entry {tx_id}: stock_before + quantity_change != stock_after")
    raise SystemExit(1)


@ledger_group.command('list')
@click.option('--product-id', default=None, help='Only entries for this product')
@click.option('--type', 'transaction_type', default=None, help='Sale, Purchase, Return or Adjustment')
@click.option('--limit', type=int, default=20, show_default=True)
@with_appcontext
def list_ledger_cli(product_id, transaction_type, limit):
    """Print recent ledger entries, newest first."""
    entries = list_inventory_transactions(
        product_id=product_id,
        transaction_type=transaction_type,
        limit=limit,
    )
    if not entries:
        click.echo("No ledger entries found.")
        return

    click.echo(f"{'ID':<6} {'Date':<21} {'Type':<11} {'Product':<24} {'Change':>7} {'Before':>7} {'After':>7}  Document")
    for tx in entries:
        click.echo(
            f"{tx.id:<6} {to_utc_z(tx.transaction_date):<21} {tx.transaction_type:<11} "
            f"{tx.product_id[:24]:<24} {tx.quantity_change:>7} {tx.stock_before:>7} {tx.stock_after:>7}  "
            f"{tx.related_document_id or '-'}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(ledger_group)
