# Overview: Stock ledger; the only code path that changes Product.quantity_on_hand.

"""
Stock Ledger Invariants (authoritative)

- Product.quantity_on_hand is never negative (DB CHECK + conditional UPDATE).
- Every change is ONE statement:
      UPDATE products SET quantity_on_hand = quantity_on_hand + :delta
      WHERE id = :id [AND quantity_on_hand >= :qty]
  The row lock taken by the UPDATE serialises concurrent callers on the same
  product; a zero rowcount on a decrement means "not enough stock right now".
  This is the authoritative check. Any earlier availability read is advisory.
- Every change appends a StockMovement (type, delta, before/after, reason,
  actor) in the same DB transaction.
- decrement()/increment() never commit. They run inside the caller's unit of
  work so a sale's stock changes and its transaction record commit together.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import func, update

from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Product, StockMovement
from ..time_utils import utcnow
from .concurrency import begin_write_unit, lock_for_update, run_with_retry

MOVEMENT_SALE = "SALE"
MOVEMENT_VOID = "VOID"
MOVEMENT_ADD = "ADD"
MOVEMENT_REMOVE = "REMOVE"
MOVEMENT_CORRECTION = "CORRECTION"

VALID_MOVEMENT_TYPES = {
    MOVEMENT_SALE,
    MOVEMENT_VOID,
    MOVEMENT_ADD,
    MOVEMENT_REMOVE,
    MOVEMENT_CORRECTION,
}

@dataclass(frozen=True)
class StockChange:
    """What one ledger call did; also the payload source for inventory events."""
    movement_id: int
    product_id: int
    product_name: str
    sku: str
    movement_type: str
    old_quantity: int
    new_quantity: int
    delta: int
    reason: str
    actor_id: int | None
    transaction_id: int | None = None

    def to_event(self) -> dict:
        return {
            "type": self.movement_type.lower(),
            "product_id": self.product_id,
            "product_name": self.product_name,
            "sku": self.sku,
            "old_quantity": self.old_quantity,
            "new_quantity": self.new_quantity,
            "delta": self.delta,
            "reason": self.reason,
            "actor": self.actor_id,
            "transaction_id": self.transaction_id,
        }

    def to_dict(self) -> dict:
        data = self.to_event()
        data["movement_id"] = self.movement_id
        data["movement_type"] = self.movement_type
        return data

def _require_positive_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError(
            "quantity must be a positive integer",
            details={"quantity": quantity},
        )
    return quantity

def _product_row(product_id: int):
    # Column query: always hits the database, never a stale identity-map copy
    return (
        db.session.query(
            Product.id,
            Product.name,
            Product.sku,
            Product.is_active,
            Product.quantity_on_hand,
        )
        .filter(Product.id == product_id)
        .first()
    )

def _apply_delta(
    *,
    product_id: int,
    delta: int,
    movement_type: str,
    reason: str,
    actor_id: int | None,
    transaction_id: int | None,
    require_active: bool,
) -> StockChange:
    if movement_type not in VALID_MOVEMENT_TYPES:
        raise ValidationError(f"Unknown movement type {movement_type}")
    if not reason or not str(reason).strip():
        raise ValidationError("reason is required for every stock change")

    row = _product_row(product_id)
    if row is None:
        raise NotFoundError("Product not found", details={"product_id": product_id})
    if require_active and not row.is_active:
        raise ValidationError("Product is inactive", details={"product_id": product_id})

    stmt = (
        update(Product)
        .where(Product.id == product_id)
        .values(
            quantity_on_hand=Product.quantity_on_hand + delta,
            updated_at=func.now(),
        )
        .execution_options(synchronize_session=False)
    )
    if delta < 0:
        stmt = stmt.where(Product.quantity_on_hand >= -delta)

    result = db.session.execute(stmt)
    if result.rowcount == 0:
        available = db.session.query(Product.quantity_on_hand).filter(Product.id == product_id).scalar()
        raise InsufficientStockError(
            f"Insufficient stock for {row.sku}: available={available} requested={-delta}",
            details={
                "items": [{
                    "product_id": product_id,
                    "product_name": row.name,
                    "sku": row.sku,
                    "available_quantity": available,
                    "requested_quantity": -delta,
                }],
            },
        )

    new_quantity = db.session.query(Product.quantity_on_hand).filter(Product.id == product_id).scalar()
    old_quantity = new_quantity - delta

    movement = StockMovement(
        product_id=product_id,
        movement_type=movement_type,
        quantity_delta=delta,
        quantity_before=old_quantity,
        quantity_after=new_quantity,
        reason=str(reason).strip()[:255],
        actor_id=actor_id,
        transaction_id=transaction_id,
        occurred_at=utcnow(),
    )
    db.session.add(movement)
    db.session.flush()

    # Keep any loaded Product instance in step with the row we just changed
    product = db.session.identity_map.get(db.session.identity_key(Product, product_id))
    if product is not None:
        db.session.expire(product, ["quantity_on_hand", "updated_at"])

    return StockChange(
        movement_id=movement.id,
        product_id=product_id,
        product_name=row.name,
        sku=row.sku,
        movement_type=movement_type,
        old_quantity=old_quantity,
        new_quantity=new_quantity,
        delta=delta,
        reason=movement.reason,
        actor_id=actor_id,
        transaction_id=transaction_id,
    )

def decrement(
    product_id: int,
    quantity: int,
    *,
    reason: str,
    actor_id: int | None,
    movement_type: str = MOVEMENT_SALE,
    transaction_id: int | None = None,
    require_active: bool = False,
) -> StockChange:
    """
    Atomically remove `quantity` units. Raises InsufficientStockError when
    on-hand (at this instant, not at any earlier check) is below quantity.
    """
    quantity = _require_positive_quantity(quantity)
    return _apply_delta(
        product_id=product_id,
        delta=-quantity,
        movement_type=movement_type,
        reason=reason,
        actor_id=actor_id,
        transaction_id=transaction_id,
        require_active=require_active,
    )

def increment(
    product_id: int,
    quantity: int,
    *,
    reason: str,
    actor_id: int | None,
    movement_type: str = MOVEMENT_ADD,
    transaction_id: int | None = None,
) -> StockChange:
    """Atomically add `quantity` units."""
    quantity = _require_positive_quantity(quantity)
    return _apply_delta(
        product_id=product_id,
        delta=quantity,
        movement_type=movement_type,
        reason=reason,
        actor_id=actor_id,
        transaction_id=transaction_id,
        require_active=False,
    )

def link_movements_to_transaction(movement_ids: list[int], transaction_id: int) -> None:
    """Attach sale movements to the transaction recorded after them."""
    if not movement_ids:
        return
    db.session.query(StockMovement).filter(
        StockMovement.id.in_(movement_ids)
    ).update({"transaction_id": transaction_id}, synchronize_session=False)

def adjust_stock(
    product_id: int,
    *,
    delta: int | None = None,
    target_quantity: int | None = None,
    reason: str,
    actor_id: int | None,
) -> StockChange:
    """
    Manual stock adjustment (receiving, shrink, count corrections).

    Exactly one of:
    - delta: signed change (ADD when positive, REMOVE when negative)
    - target_quantity: absolute figure (CORRECTION); resolved to a delta
      under the write lock so a concurrent sale cannot slip in between

    Goes through the same conditional-UPDATE primitive as sales, so the
    non-negative invariant has no bypass. Commits its own unit.
    """
    if (delta is None) == (target_quantity is None):
        raise ValidationError("Provide exactly one of quantity_delta or target_quantity")
    if delta is not None and delta == 0:
        raise ValidationError("quantity_delta must be non-zero")
    if target_quantity is not None and target_quantity < 0:
        raise ValidationError("target_quantity must be >= 0")

    def _op() -> StockChange:
        begin_write_unit()

        if target_quantity is not None:
            product = lock_for_update(
                db.session.query(Product).filter_by(id=product_id).populate_existing()
            ).first()
            if product is None:
                raise NotFoundError("Product not found", details={"product_id": product_id})
            change = target_quantity - product.quantity_on_hand
            if change == 0:
                raise ValidationError(
                    "target_quantity equals current quantity",
                    details={"quantity_on_hand": product.quantity_on_hand},
                )
            movement_type = MOVEMENT_CORRECTION
        else:
            change = delta
            movement_type = MOVEMENT_ADD if delta > 0 else MOVEMENT_REMOVE

        if change > 0:
            result = increment(product_id, change, reason=reason, actor_id=actor_id, movement_type=movement_type)
        else:
            result = decrement(product_id, -change, reason=reason, actor_id=actor_id, movement_type=movement_type)

        db.session.commit()
        return result

    try:
        return run_with_retry(_op)
    except (ValidationError, NotFoundError, InsufficientStockError):
        db.session.rollback()
        raise

def get_inventory_summary(low_stock_threshold: int = 10) -> dict:
    active = db.session.query(Product).filter(Product.is_active.is_(True))

    return {
        "total_products": active.count(),
        "in_stock_products": active.filter(Product.quantity_on_hand > 0).count(),
        "out_of_stock_products": active.filter(Product.quantity_on_hand == 0).count(),
        "low_stock_products": active.filter(
            Product.quantity_on_hand > 0,
            Product.quantity_on_hand <= low_stock_threshold,
        ).count(),
        "total_stock_quantity": int(
            db.session.query(func.coalesce(func.sum(Product.quantity_on_hand), 0))
            .filter(Product.is_active.is_(True))
            .scalar() or 0
        ),
        "low_stock_threshold": low_stock_threshold,
    }

def list_low_stock(threshold: int = 10) -> list[Product]:
    return (
        db.session.query(Product)
        .filter(Product.is_active.is_(True), Product.quantity_on_hand <= threshold)
        .order_by(Product.quantity_on_hand.asc(), Product.name.asc())
        .all()
    )

def list_movements(product_id: int, *, limit: int = 200) -> list[StockMovement]:
    if db.session.get(Product, product_id) is None:
        raise NotFoundError("Product not found", details={"product_id": product_id})

    return (
        db.session.query(StockMovement)
        .filter_by(product_id=product_id)
        .order_by(StockMovement.occurred_at.desc(), StockMovement.id.desc())
        .limit(limit)
        .all()
    )
