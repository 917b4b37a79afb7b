# Overview: Transaction Recorder; writes the sale header, lines and payments inside the caller's unit.

from __future__ import annotations

from flask import current_app

from ..errors import ValidationError
from ..extensions import db
from ..models import Payment, PaymentMethod, PosTransaction, Product, TransactionItem
from ..models.sales import PAYMENT_RECORD_COMPLETED, STATUS_COMPLETED
from ..time_utils import utcnow
from ..validation import SaleRequest
from . import pricing
from .sequence_service import next_number


def _load_products(product_ids: set[int]) -> dict[int, Product]:
    if not product_ids:
        return {}
    rows = db.session.query(Product).filter(Product.id.in_(product_ids)).all()
    return {p.id: p for p in rows}


def _load_payment_methods(method_ids: set[int]) -> dict[int, PaymentMethod]:
    if not method_ids:
        return {}
    rows = db.session.query(PaymentMethod).filter(PaymentMethod.id.in_(method_ids)).all()
    return {m.id: m for m in rows}


def validate_payment_method(method: PaymentMethod | None, method_id: int, reference: str | None) -> str | None:
    """Return a problem description, or None when the tender is acceptable."""
    if method is None:
        return f"payment method {method_id} not found"
    if not method.is_active:
        return f"payment method {method.code} is inactive"
    if method.requires_reference and not reference:
        return f"payment method {method.code} requires a reference_number"
    return None


def create_transaction(sale: SaleRequest, *, cashier_id: int | None) -> PosTransaction:
    """
    Record a sale: header, line items and payments.

    Runs inside the caller's unit of work and only flushes; the caller
    commits (together with the stock decrements) or rolls back.

    Product name, SKU and price are snapshotted onto each line. A line
    without unit_price_cents sells at the product's list price.

    Raises ValidationError with per-field details when any line or tender
    is unacceptable or the resulting total would be negative.
    """
    if not sale.items:
        raise ValidationError("At least one item is required", details={"fields": {"items": "required"}})

    products = _load_products({line.product_id for line in sale.items})
    methods = _load_payment_methods({p.payment_method_id for p in sale.payments})

    problems: dict[str, str] = {}
    priced_lines = []
    for i, line in enumerate(sale.items):
        key = f"items[{i}]"
        product = products.get(line.product_id)
        if product is None:
            problems[f"{key}.product_id"] = f"product {line.product_id} not found"
            continue
        if line.quantity <= 0:
            problems[f"{key}.quantity"] = "quantity must be positive"
            continue

        unit_price = line.unit_price_cents if line.unit_price_cents is not None else product.price_cents
        if unit_price is None:
            problems[f"{key}.unit_price_cents"] = f"product {product.sku} has no price"
            continue
        if line.discount_cents > line.quantity * unit_price:
            problems[f"{key}.discount_cents"] = "line discount cannot exceed quantity * unit price"
            continue

        priced_lines.append((line, product, unit_price))

    for i, payment in enumerate(sale.payments):
        problem = validate_payment_method(
            methods.get(payment.payment_method_id),
            payment.payment_method_id,
            payment.reference_number,
        )
        if problem:
            problems[f"payments[{i}].payment_method_id"] = problem

    if problems:
        raise ValidationError("Invalid sale", details={"fields": problems})

    line_totals = [
        pricing.line_total_cents(line.quantity, unit_price, line.discount_cents)
        for line, _, unit_price in priced_lines
    ]
    totals = pricing.compute_totals(
        line_totals,
        tax_cents=sale.tax_cents,
        discount_cents=sale.discount_cents,
        paid_cents=sum(p.amount_cents for p in sale.payments),
    )
    if totals.total_cents < 0:
        raise ValidationError(
            "Sale total cannot be negative",
            details={"fields": {"discount_cents": "discount exceeds subtotal plus tax"}},
        )

    now = utcnow()
    prefix = current_app.config.get("POS_TRANSACTION_PREFIX", "TXN")

    tx = PosTransaction(
        transaction_number=next_number(prefix),
        idempotency_key=sale.idempotency_key,
        customer_id=sale.customer.customer_id,
        customer_name=sale.customer.name,
        customer_phone=sale.customer.phone,
        customer_email=sale.customer.email,
        subtotal_cents=totals.subtotal_cents,
        tax_cents=totals.tax_cents,
        discount_cents=totals.discount_cents,
        total_cents=totals.total_cents,
        paid_cents=totals.paid_cents,
        change_cents=totals.change_cents,
        status=totals.status,
        payment_status=totals.payment_status,
        notes=sale.notes,
        cashier_id=cashier_id,
        created_at=now,
        updated_at=now,
        completed_at=now if totals.status == STATUS_COMPLETED else None,
    )
    db.session.add(tx)
    db.session.flush()

    for (line, product, unit_price), line_total in zip(priced_lines, line_totals):
        db.session.add(TransactionItem(
            transaction_id=tx.id,
            product_id=product.id,
            product_name=product.name,
            product_sku=product.sku,
            quantity=line.quantity,
            unit_price_cents=unit_price,
            discount_cents=line.discount_cents,
            line_total_cents=line_total,
            created_at=now,
        ))

    for payment in sale.payments:
        db.session.add(Payment(
            transaction_id=tx.id,
            payment_method_id=payment.payment_method_id,
            amount_cents=payment.amount_cents,
            reference_number=payment.reference_number,
            status=PAYMENT_RECORD_COMPLETED,
            created_by_id=cashier_id,
            created_at=now,
        ))

    db.session.flush()
    # items/payments were added by foreign key; reload the collections
    db.session.expire(tx, ["items", "payments"])
    return tx
