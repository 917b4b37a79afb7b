# Overview: Flask CLI command groups for bootstrap, inspection, and stock maintenance.

# backend/backoffice/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Bootstrap:
# - python -m flask db upgrade
#   Create / migrate the schema.
# - python -m flask pos seed [--demo-products]
#   Idempotent: default payment methods (cash, card, UPI, bank transfer), optional demo catalog.
#
# Inspection:
# - python -m flask pos transactions --status completed --limit 20
#   List recent transactions, newest first.
# - python -m flask stock low --threshold 10
#   List active products at or below the threshold.
#
# Maintenance:
# - python -m flask stock adjust --product-id 1 --delta -3 --reason "Damaged in transit" --actor-id 1
# - python -m flask stock adjust --sku SKU-001 --target 40 --reason "Cycle count" --actor-id 1
#   Manual adjustment through the stock ledger (audited like any sale).

import click
from flask.cli import with_appcontext

from .errors import PosError
from .extensions import db
from .models import PaymentMethod, Product
from .services import history_service, stock_service
from .validation import HistoryFilters

DEFAULT_PAYMENT_METHODS = [
    {"name": "Cash", "code": "CASH", "type": "cash", "requires_reference": False},
    {"name": "Card", "code": "CARD", "type": "card", "requires_reference": True},
    {"name": "UPI", "code": "UPI", "type": "digital", "requires_reference": True},
    {"name": "Bank Transfer", "code": "BANK", "type": "bank_transfer", "requires_reference": True},
]

DEMO_PRODUCTS = [
    {"sku": "SKU-001", "name": "Espresso Beans 1kg", "price_cents": 2499, "quantity_on_hand": 40},
    {"sku": "SKU-002", "name": "Paper Cups (50)", "price_cents": 650, "quantity_on_hand": 120},
    {"sku": "SKU-003", "name": "Oat Milk 1L", "price_cents": 399, "quantity_on_hand": 8},
    {"sku": "SKU-004", "name": "Ceramic Mug", "price_cents": 1200, "quantity_on_hand": 0},
]


def seed_payment_methods() -> int:
    created = 0
    for fields in DEFAULT_PAYMENT_METHODS:
        if db.session.query(PaymentMethod).filter_by(code=fields["code"]).first():
            continue
        db.session.add(PaymentMethod(is_active=True, **fields))
        created += 1
    db.session.commit()
    return created


def seed_demo_products() -> int:
    created = 0
    for fields in DEMO_PRODUCTS:
        if db.session.query(Product).filter_by(sku=fields["sku"]).first():
            continue
        db.session.add(Product(is_active=True, **fields))
        created += 1
    db.session.commit()
    return created


@click.group('pos')
def pos_group():
    """Point-of-sale bootstrap and inspection commands."""


@pos_group.command('seed')
@click.option('--demo-products', is_flag=True, help='Also create a small demo catalog')
@with_appcontext
def seed(demo_products):
    """Create default payment methods (and optionally demo products)."""
    click.echo("START Seeding POS data...")
    created = seed_payment_methods()
    click.echo(f"PASS Payment methods created: {created}")

    if demo_products:
        created = seed_demo_products()
        click.echo(f"PASS Demo products created: {created}")

    click.echo("DONE")


@pos_group.command('transactions')
@click.option('--status', default=None, help='pending | completed | voided')
@click.option('--payment-status', default=None, help='unpaid | partially_paid | paid')
@click.option('--search', default=None, help='Transaction number, customer name or phone')
@click.option('--limit', default=20, type=int, show_default=True)
@with_appcontext
def list_transactions(status, payment_status, search, limit):
    """List recent transactions, newest first."""
    result = history_service.list_transactions(HistoryFilters(
        page=1,
        limit=max(1, min(limit, 100)),
        status=status,
        payment_status=payment_status,
        search=search,
    ))

    rows = result["transactions"]
    if not rows:
        click.echo("No transactions found.")
        return

    for tx in rows:
        click.echo(
            f"{tx['transaction_number']:<12} {tx['status']:<10} {tx['payment_status']:<15} "
            f"total={tx['total_cents']:>10} paid={tx['paid_cents']:>10} "
            f"cashier={tx['cashier_id']} created={tx['created_at']}"
        )
    click.echo(f"Showing {len(rows)} of {result['pagination']['total']}")


@click.group('stock')
def stock_group():
    """Stock inspection and manual adjustment commands."""


@stock_group.command('adjust')
@click.option('--product-id', type=int, default=None)
@click.option('--sku', default=None)
@click.option('--delta', type=int, default=None, help='Signed quantity change')
@click.option('--target', type=int, default=None, help='Absolute quantity after adjustment')
@click.option('--reason', required=True)
@click.option('--actor-id', type=int, required=True)
@with_appcontext
def adjust(product_id, sku, delta, target, reason, actor_id):
    """Adjust on-hand stock by --delta or to --target."""
    if (product_id is None) == (sku is None):
        raise click.UsageError("Provide exactly one of --product-id or --sku")

    if sku is not None:
        product = db.session.query(Product).filter_by(sku=sku).first()
        if product is None:
            raise click.ClickException(f"Product with SKU {sku} not found")
        product_id = product.id

    try:
        change = stock_service.adjust_stock(
            product_id,
            delta=delta,
            target_quantity=target,
            reason=reason,
            actor_id=actor_id,
        )
    except PosError as e:
        raise click.ClickException(f"{e.message} {e.details or ''}".strip())

    click.echo(
        f"PASS {change.sku}: {change.old_quantity} -> {change.new_quantity} "
        f"({change.movement_type}, movement #{change.movement_id})"
    )


@stock_group.command('low')
@click.option('--threshold', type=int, default=None)
@with_appcontext
def low(threshold):
    """List active products at or below the low-stock threshold."""
    from flask import current_app

    if threshold is None:
        threshold = current_app.config["POS_LOW_STOCK_THRESHOLD"]

    products = stock_service.list_low_stock(threshold)
    if not products:
        click.echo(f"No products at or below {threshold}.")
        return

    for p in products:
        flag = "OUT" if p.quantity_on_hand == 0 else "LOW"
        click.echo(f"{flag:<4} {p.sku:<12} qty={p.quantity_on_hand:<6} {p.name}")


def register_commands(app):
    app.cli.add_command(pos_group)
    app.cli.add_command(stock_group)
