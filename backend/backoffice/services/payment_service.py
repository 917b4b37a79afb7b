# Overview: Tender types and payments applied after the sale was recorded.

"""
Payment Service

Split tender at the register goes through the sale itself. This module
covers what happens later: a pending (layaway / deposit) sale receiving
further payments until it is paid in full.

- Totals, change and statuses are recomputed through services/pricing.py
  from the stored lines and completed payments, never patched by hand.
- A voided or fully paid transaction accepts no further payments.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..errors import CommitFailure, NotFoundError, ValidationError
from ..extensions import db
from ..models import Payment, PaymentMethod, PosTransaction
from ..models.sales import PAYMENT_PAID, PAYMENT_RECORD_COMPLETED, STATUS_COMPLETED, STATUS_VOIDED
from ..time_utils import utcnow
from . import pricing
from .concurrency import begin_write_unit, lock_for_update, run_with_retry
from .notification_service import CHANNEL_POS, EVENT_PAYMENT_ADDED, EventNotifier, NullNotifier
from .transaction_service import validate_payment_method


def list_payment_methods(include_inactive: bool = False) -> list[PaymentMethod]:
    query = db.session.query(PaymentMethod)
    if not include_inactive:
        query = query.filter(PaymentMethod.is_active.is_(True))
    return query.order_by(PaymentMethod.name.asc(), PaymentMethod.id.asc()).all()


def add_payment(
    transaction_id: int,
    *,
    payment_method_id: int,
    amount_cents: int,
    reference_number: str | None = None,
    actor_id: int | None = None,
    notifier: EventNotifier | None = None,
) -> PosTransaction:
    """
    Apply one more tender to a pending transaction.

    Raises:
        NotFoundError: transaction does not exist
        ValidationError: voided / already paid, bad amount or tender
    """
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int) or amount_cents <= 0:
        raise ValidationError("amount_cents must be a positive integer")
    notifier = notifier or NullNotifier()

    def _op():
        begin_write_unit()

        tx = lock_for_update(
            db.session.query(PosTransaction).filter_by(id=transaction_id).populate_existing()
        ).first()
        if tx is None:
            raise NotFoundError("Transaction not found", details={"transaction_id": transaction_id})
        if tx.status == STATUS_VOIDED:
            raise ValidationError("Cannot add payments to a voided transaction")
        if tx.payment_status == PAYMENT_PAID:
            raise ValidationError("Transaction is already paid in full")

        method = db.session.get(PaymentMethod, payment_method_id)
        problem = validate_payment_method(method, payment_method_id, reference_number)
        if problem:
            raise ValidationError(problem, details={"fields": {"payment_method_id": problem}})

        payment = Payment(
            transaction_id=tx.id,
            payment_method_id=payment_method_id,
            amount_cents=amount_cents,
            reference_number=reference_number,
            status=PAYMENT_RECORD_COMPLETED,
            created_by_id=actor_id,
            created_at=utcnow(),
        )
        db.session.add(payment)
        db.session.flush()
        db.session.expire(tx, ["payments"])

        totals = pricing.totals_for_transaction(tx)
        tx.paid_cents = totals.paid_cents
        tx.change_cents = totals.change_cents
        tx.payment_status = totals.payment_status
        tx.status = totals.status
        if totals.status == STATUS_COMPLETED and tx.completed_at is None:
            tx.completed_at = utcnow()

        db.session.commit()
        return tx

    try:
        tx = run_with_retry(_op)
    except (ValidationError, NotFoundError):
        db.session.rollback()
        raise
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("Payment failed for transaction %s", transaction_id)
        raise CommitFailure("Payment could not be committed") from e

    current_app.logger.info(
        "Payment of %s added to %s (payment_status=%s)",
        amount_cents, tx.transaction_number, tx.payment_status,
    )
    try:
        notifier.publish(CHANNEL_POS, EVENT_PAYMENT_ADDED, {"transaction": tx.to_dict()})
    except Exception:
        current_app.logger.exception("Notification failed for payment on %s", tx.transaction_number)

    return tx
