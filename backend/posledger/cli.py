# Overview: Flask CLI command groups for bootstrap, audit, and maintenance.

# backend/posledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to posledger (PowerShell: $env:FLASK_APP="posledger").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables (no-op for existing ones).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-demo
#   Idempotent demo data: users, a supplier, a client, products with opening stock.
#
# Stock audit:
# - python -m flask stock audit [--product-id 1]
#   Report products whose movement sum differs from on-hand. Exit code 1 on mismatch.
#
# Credit maintenance:
# - python -m flask credit refresh-overdue
#   Re-derive status of open credit records (marks past-due ones overdue).

from decimal import Decimal

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Category, Client, Product, Supplier, User
from .models.enums import AdjustmentType, UserRole
from .services import adjustment_service, credit_service, stock_service


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

    click.echo("PASS Database reset complete. Run 'python -m flask system seed-demo' for demo data.")


DEMO_USERS = [
    ("Admin", "admin@posledger.local", UserRole.ADMIN.value),
    ("Manager", "manager@posledger.local", UserRole.MANAGER.value),
    ("Cashier", "cashier@posledger.local", UserRole.CASHIER.value),
]

# sku, name, price, cost, min_stock, opening stock
DEMO_PRODUCTS = [
    ("SKU-1001", "Espresso Beans 1kg", "24.90", "14.00", 5, 40),
    ("SKU-1002", "Paper Cups (100)", "6.50", "2.80", 10, 120),
    ("SKU-1003", "Oat Milk 1L", "3.20", "1.70", 12, 8),
]


@system_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """
    Insert demo master data. Safe to re-run: existing rows are skipped.

    Opening stock is posted as an opening_stock adjustment so the movement
    log explains it.
    """
    db.create_all()

    for name, email, role in DEMO_USERS:
        if db.session.query(User).filter_by(email=email).first():
            click.echo(f"WARN  User '{email}' already exists, skipping...")
            continue
        db.session.add(User(name=name, email=email, role=role))
    db.session.commit()
    admin = db.session.query(User).filter_by(email=DEMO_USERS[0][1]).first()

    category = db.session.query(Category).filter_by(name="Cafe Supplies").first()
    if not category:
        category = Category(name="Cafe Supplies")
        db.session.add(category)

    if not db.session.query(Supplier).filter_by(name="Demo Wholesale").first():
        db.session.add(Supplier(name="Demo Wholesale", email="orders@wholesale.local"))

    if not db.session.query(Client).filter_by(name="Corner Office").first():
        db.session.add(Client(
            name="Corner Office",
            email="billing@corner.local",
            credit_balance=Decimal("0.00"),
            credit_limit=Decimal("500.00"),
        ))
    db.session.commit()

    for sku, name, price, cost, min_stock, opening in DEMO_PRODUCTS:
        if db.session.query(Product).filter_by(sku=sku).first():
            click.echo(f"WARN  Product '{sku}' already exists, skipping...")
            continue
        product = Product(
            sku=sku,
            name=name,
            category_id=category.id,
            price=Decimal(price),
            cost=Decimal(cost),
            min_stock=min_stock,
        )
        db.session.add(product)
        db.session.commit()

        adjustment_service.post_adjustment(
            product_id=product.id,
            quantity_change=opening,
            adjustment_type=AdjustmentType.OPENING_STOCK.value,
            reason="Demo opening stock",
            created_by=admin.id,
        )
        click.echo(f"PASS Created product {sku} with opening stock {opening}")

    click.echo("DONE Demo data ready.")


@click.group('stock')
def stock_group():
    """Stock inspection commands."""


@stock_group.command('audit')
@click.option('--product-id', type=int, default=None, help='Limit the audit to one product')
@with_appcontext
def stock_audit(product_id):
    """Compare each product's movement sum with its on-hand quantity."""
    discrepancies = stock_service.verify_movement_parity(product_id)
    if not discrepancies:
        click.echo("PASS Movement log explains all on-hand quantities.")
        return

    click.echo(f"FAIL {len(discrepancies)} product(s) out of parity:")
    for row in discrepancies:
        click.echo(
            f"  [{row['product_id']}] {row['sku']} {row['name']}: "
            f"on_hand={row['quantity_on_hand']} movements={row['movement_total']} "
            f"diff={row['difference']:+d}"
        )
    raise SystemExit(1)


@click.group('credit')
def credit_group():
    """Credit ledger maintenance commands."""


@credit_group.command('refresh-overdue')
@with_appcontext
def refresh_overdue():
    """Re-derive status of open credit records."""
    changed = credit_service.refresh_overdue()
    click.echo(f"PASS Updated {changed} credit record(s).")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(stock_group)
    app.cli.add_command(credit_group)
