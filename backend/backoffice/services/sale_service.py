# Overview: POS sale orchestration; check, atomic commit, then best-effort notification.

"""
Sale Orchestrator

STATES:
    RECEIVED -> STOCK_VERIFIED -> COMMITTED -> NOTIFICATIONS_SENT
    failure exits: REJECTED (validation / stock), FAILED (store error)

WHY ONE UNIT: the stock decrements and the transaction record commit
together or not at all. A sale that fails halfway leaves stock, items and
payments exactly as they were before it started.

Notifications go out only after commit. Their failure is logged and never
changes the sale's outcome.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..errors import (
    CommitFailure,
    InsufficientStockError,
    ItemsUnavailableError,
    NotificationFailure,
    NotFoundError,
    ValidationError,
)
from ..extensions import db
from ..models import PosTransaction
from ..models.sales import PAYMENT_RECORD_COMPLETED, PAYMENT_RECORD_VOIDED, STATUS_VOIDED
from ..time_utils import utcnow
from ..validation import SaleRequest
from . import availability_service, pricing, stock_service, transaction_service
from .concurrency import begin_write_unit, lock_for_update, run_with_retry
from .notification_service import (
    CHANNEL_INVENTORY,
    CHANNEL_POS,
    EVENT_INVENTORY_UPDATED,
    EVENT_TRANSACTION_COMPLETED,
    EVENT_TRANSACTION_VOIDED,
    EventNotifier,
    NullNotifier,
)
from .stock_service import StockChange

REJECTED_ERRORS = (ValidationError, NotFoundError, ItemsUnavailableError)


class SaleState(enum.Enum):
    RECEIVED = "received"
    STOCK_VERIFIED = "stock_verified"
    COMMITTED = "committed"
    NOTIFICATIONS_SENT = "notifications_sent"
    REJECTED = "rejected"
    FAILED = "failed"


@dataclass
class SaleResult:
    transaction: PosTransaction
    inventory_updates: list[StockChange] = field(default_factory=list)
    state: SaleState = SaleState.COMMITTED
    replayed: bool = False

    def to_dict(self) -> dict:
        return {
            "transaction": self.transaction.to_dict(),
            "inventory_updates": [change.to_dict() for change in self.inventory_updates],
            "state": self.state.value,
            "replayed": self.replayed,
        }


def _find_by_idempotency_key(key: str | None) -> PosTransaction | None:
    if not key:
        return None
    return db.session.query(PosTransaction).filter_by(idempotency_key=key).first()


def _unavailable_error(results) -> ItemsUnavailableError:
    items = [r.to_dict() for r in results]
    if any(r.is_stock_shortage for r in results):
        return InsufficientStockError("Insufficient stock for one or more items", details={"items": items})
    return ItemsUnavailableError("One or more items are unavailable", details={"items": items})


def publish_sale_events(
    notifier: EventNotifier,
    changes: list[StockChange],
    tx: PosTransaction,
    *,
    event: str = EVENT_TRANSACTION_COMPLETED,
) -> None:
    """Raises NotificationFailure if the transport rejects any event."""
    try:
        for change in changes:
            notifier.publish(CHANNEL_INVENTORY, EVENT_INVENTORY_UPDATED, change.to_event())
        notifier.publish(CHANNEL_POS, event, {"transaction": tx.to_dict()})
    except Exception as e:
        raise NotificationFailure(
            f"Could not publish {event} for {tx.transaction_number}",
            details={"transaction_id": tx.id, "cause": repr(e)},
        ) from e


def _notify(notifier: EventNotifier, changes, tx, *, event: str) -> bool:
    try:
        publish_sale_events(notifier, changes, tx, event=event)
    except NotificationFailure as e:
        current_app.logger.warning("%s (already committed): %s", e.message, e.details["cause"])
        return False
    return True


def process_sale(
    sale: SaleRequest,
    *,
    cashier_id: int | None,
    notifier: EventNotifier | None = None,
) -> SaleResult:
    """
    Run one POS sale end to end.

    Raises:
        ItemsUnavailableError / InsufficientStockError: rejected, nothing written
        ValidationError / NotFoundError: rejected, nothing written
        CommitFailure: the unit failed and was rolled back in full
    """
    notifier = notifier or NullNotifier()
    log = current_app.logger

    existing = _find_by_idempotency_key(sale.idempotency_key)
    if existing is not None:
        log.info("Replaying sale %s for idempotency key %s", existing.transaction_number, sale.idempotency_key)
        return SaleResult(transaction=existing, state=SaleState.COMMITTED, replayed=True)

    # RECEIVED -> STOCK_VERIFIED (advisory, read-only)
    log.debug("Sale %s: %s lines", SaleState.RECEIVED.value, len(sale.items))
    results = availability_service.check_availability(sale.availability_lines())
    missing = availability_service.unavailable(results)
    if missing:
        error = _unavailable_error(missing)
        log.info("Sale %s at stock check: %s", SaleState.REJECTED.value, error.details)
        raise error

    log.debug("Sale %s: %s lines available", SaleState.STOCK_VERIFIED.value, len(results))

    def _op():
        begin_write_unit()

        changes: list[StockChange] = []
        shortages: list[dict] = []
        for line in sale.items:
            try:
                changes.append(stock_service.decrement(
                    line.product_id,
                    line.quantity,
                    reason="POS sale",
                    actor_id=cashier_id,
                    require_active=True,
                ))
            except InsufficientStockError as e:
                shortages.extend(e.details.get("items", []))

        if shortages:
            raise InsufficientStockError(
                "Insufficient stock for one or more items",
                details={"items": shortages},
            )

        tx = transaction_service.create_transaction(sale, cashier_id=cashier_id)
        stock_service.link_movements_to_transaction([c.movement_id for c in changes], tx.id)

        db.session.commit()
        return tx, [replace(c, transaction_id=tx.id) for c in changes]

    # STOCK_VERIFIED -> COMMITTED
    try:
        tx, changes = run_with_retry(_op)
    except REJECTED_ERRORS as e:
        db.session.rollback()
        log.info("Sale %s: %s %s", SaleState.REJECTED.value, e.message, e.details)
        raise
    except IntegrityError as e:
        db.session.rollback()
        existing = _find_by_idempotency_key(sale.idempotency_key)
        if existing is not None:
            log.info("Concurrent submit resolved to %s", existing.transaction_number)
            return SaleResult(transaction=existing, state=SaleState.COMMITTED, replayed=True)
        log.exception("Sale %s: integrity error", SaleState.FAILED.value)
        raise CommitFailure("Transaction could not be committed") from e
    except SQLAlchemyError as e:
        db.session.rollback()
        log.exception("Sale %s: store error", SaleState.FAILED.value)
        raise CommitFailure("Transaction could not be committed") from e
    except Exception as e:
        db.session.rollback()
        log.exception("Sale %s: unexpected error", SaleState.FAILED.value)
        raise CommitFailure("Transaction could not be committed") from e

    log.info(
        "Sale %s committed: total=%s payment_status=%s lines=%s",
        tx.transaction_number, tx.total_cents, tx.payment_status, len(changes),
    )

    # COMMITTED -> NOTIFICATIONS_SENT (best effort)
    state = SaleState.COMMITTED
    if _notify(notifier, changes, tx, event=EVENT_TRANSACTION_COMPLETED):
        state = SaleState.NOTIFICATIONS_SENT

    return SaleResult(transaction=tx, inventory_updates=changes, state=state)


def void_transaction(
    transaction_id: int,
    *,
    actor_id: int | None,
    reason: str,
    notifier: EventNotifier | None = None,
) -> SaleResult:
    """
    Void a pending or completed sale.

    Restocks every line (VOID movements), voids all tenders and recomputes
    the payment status, in one unit. A voided sale cannot be voided again.
    """
    if not reason or not str(reason).strip():
        raise ValidationError("reason is required to void a transaction")
    reason = str(reason).strip()
    notifier = notifier or NullNotifier()

    def _op():
        begin_write_unit()

        tx = lock_for_update(
            db.session.query(PosTransaction).filter_by(id=transaction_id).populate_existing()
        ).first()
        if tx is None:
            raise NotFoundError("Transaction not found", details={"transaction_id": transaction_id})
        if tx.status == STATUS_VOIDED:
            raise ValidationError("Transaction already voided", details={"transaction_id": transaction_id})

        changes = [
            stock_service.increment(
                item.product_id,
                item.quantity,
                reason=f"Void {tx.transaction_number}: {reason}",
                actor_id=actor_id,
                movement_type=stock_service.MOVEMENT_VOID,
                transaction_id=tx.id,
            )
            for item in tx.items
        ]

        for payment in tx.payments:
            if payment.status == PAYMENT_RECORD_COMPLETED:
                payment.status = PAYMENT_RECORD_VOIDED

        totals = pricing.totals_for_transaction(tx)
        tx.paid_cents = totals.paid_cents
        tx.change_cents = totals.change_cents
        tx.payment_status = totals.payment_status
        tx.status = STATUS_VOIDED
        tx.voided_at = utcnow()
        tx.voided_by_id = actor_id
        tx.void_reason = reason[:255]

        db.session.commit()
        return tx, changes

    try:
        tx, changes = run_with_retry(_op)
    except REJECTED_ERRORS:
        db.session.rollback()
        raise
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("Void failed for transaction %s", transaction_id)
        raise CommitFailure("Void could not be committed") from e

    current_app.logger.info("Transaction %s voided by %s", tx.transaction_number, actor_id)

    state = SaleState.COMMITTED
    if _notify(notifier, changes, tx, event=EVENT_TRANSACTION_VOIDED):
        state = SaleState.NOTIFICATIONS_SENT
    return SaleResult(transaction=tx, inventory_updates=changes, state=state)
