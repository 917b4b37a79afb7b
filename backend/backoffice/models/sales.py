from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


# Transaction lifecycle
STATUS_PENDING = "pending"
STATUS_COMPLETED = "completed"
STATUS_VOIDED = "voided"

# Derived from tendered amounts (see services/pricing.py)
PAYMENT_UNPAID = "unpaid"
PAYMENT_PARTIAL = "partially_paid"
PAYMENT_PAID = "paid"

PAYMENT_RECORD_COMPLETED = "completed"
PAYMENT_RECORD_VOIDED = "voided"


class PosTransaction(db.Model):
    """
    One POS sale: header, totals and derived statuses.

    WHY: The header is written once, inside the same unit of work as the
    stock decrements for the sale. After commit only status transitions
    (void) and payment recomputation touch it.

    INVARIANT: total_cents = subtotal_cents + tax_cents - discount_cents,
    subtotal_cents = sum(item.line_total_cents).
    """
    __tablename__ = "pos_transactions"
    __table_args__ = (
        db.CheckConstraint("total_cents >= 0", name="ck_pos_transactions_total_non_negative"),
        db.Index("ix_pos_transactions_status_created", "status", "created_at"),
        db.Index("ix_pos_transactions_payment_status", "payment_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable, gapless (allocated inside the sale's own unit)
    transaction_number = db.Column(db.String(64), nullable=False, unique=True)

    # Client-supplied replay guard for POS terminals retrying a submit
    idempotency_key = db.Column(db.String(128), nullable=True, unique=True)

    # Walk-in sales leave customer_id empty; contact details are snapshots
    customer_id = db.Column(db.Integer, nullable=True, index=True)
    customer_name = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(64), nullable=True)
    customer_email = db.Column(db.String(255), nullable=True)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)
    paid_cents = db.Column(db.Integer, nullable=False, default=0)
    change_cents = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default=STATUS_PENDING, index=True)
    payment_status = db.Column(db.String(16), nullable=False, default=PAYMENT_UNPAID)

    notes = db.Column(db.Text, nullable=True)

    cashier_id = db.Column(db.Integer, nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Void audit trail
    voided_at = db.Column(db.DateTime(timezone=True), nullable=True)
    voided_by_id = db.Column(db.Integer, nullable=True)
    void_reason = db.Column(db.String(255), nullable=True)

    items = db.relationship(
        "TransactionItem",
        backref="transaction",
        lazy="selectin",
        order_by="TransactionItem.id",
    )
    payments = db.relationship(
        "Payment",
        backref="transaction",
        lazy="selectin",
        order_by="Payment.id",
    )

    def __repr__(self) -> str:
        return f"<PosTransaction id={self.id} number={self.transaction_number!r} status={self.status}>"

    def to_dict(self, *, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "transaction_number": self.transaction_number,
            "idempotency_key": self.idempotency_key,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "customer_email": self.customer_email,
            "subtotal_cents": self.subtotal_cents,
            "tax_cents": self.tax_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "paid_cents": self.paid_cents,
            "change_cents": self.change_cents,
            "status": self.status,
            "payment_status": self.payment_status,
            "notes": self.notes,
            "cashier_id": self.cashier_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "completed_at": to_utc_z(self.completed_at) if self.completed_at else None,
            "voided_at": to_utc_z(self.voided_at) if self.voided_at else None,
            "voided_by_id": self.voided_by_id,
            "void_reason": self.void_reason,
        }
        if include_lines:
            data["items"] = [item.to_dict() for item in self.items]
            data["payments"] = [payment.to_dict() for payment in self.payments]
        return data


class TransactionItem(db.Model):
    """
    One line of a sale.

    product_name / product_sku / unit_price_cents are SNAPSHOTS taken at
    sale time. Never resolve them through the product relationship for
    display: renaming a product must not rewrite history.
    """
    __tablename__ = "pos_transaction_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_pos_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("pos_transactions.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    product_sku = db.Column(db.String(64), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    line_total_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "product_sku": self.product_sku,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "discount_cents": self.discount_cents,
            "line_total_cents": self.line_total_cents,
            "created_at": to_utc_z(self.created_at),
        }


class Payment(db.Model):
    """
    One tender applied to a transaction (split tender = several rows).

    amount_cents is what the customer handed over; over-tender shows up as
    change_cents on the header, not here.
    """
    __tablename__ = "pos_payments"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_pos_payments_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("pos_transactions.id"), nullable=False, index=True)
    payment_method_id = db.Column(db.Integer, db.ForeignKey("payment_methods.id"), nullable=False, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)

    # Card auth code, UPI reference, cheque number, ...
    reference_number = db.Column(db.String(128), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=PAYMENT_RECORD_COMPLETED, index=True)

    created_by_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    payment_method = db.relationship("PaymentMethod", lazy="joined")

    def to_dict(self) -> dict:
        method = self.payment_method
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "payment_method_id": self.payment_method_id,
            "payment_method_code": method.code if method else None,
            "payment_method_name": method.name if method else None,
            "amount_cents": self.amount_cents,
            "reference_number": self.reference_number,
            "status": self.status,
            "created_by_id": self.created_by_id,
            "created_at": to_utc_z(self.created_at),
        }
