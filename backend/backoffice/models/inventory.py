from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class StockMovement(db.Model):
    """
    Append-only audit row for every change to Product.quantity_on_hand.

    MOVEMENT TYPES:
    - SALE: POS sale decrement
    - VOID: restock from a voided sale
    - ADD / REMOVE: manual adjustment by signed delta
    - CORRECTION: manual adjustment to an absolute target

    Written in the same DB transaction as the quantity change it records,
    so a rolled-back sale leaves no movement behind.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_product_occurred", "product_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    movement_type = db.Column(db.String(16), nullable=False, index=True)

    quantity_delta = db.Column(db.Integer, nullable=False)
    quantity_before = db.Column(db.Integer, nullable=False)
    quantity_after = db.Column(db.Integer, nullable=False)

    reason = db.Column(db.String(255), nullable=False)
    actor_id = db.Column(db.Integer, nullable=True, index=True)

    transaction_id = db.Column(db.Integer, db.ForeignKey("pos_transactions.id"), nullable=True, index=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "movement_type": self.movement_type,
            "quantity_delta": self.quantity_delta,
            "quantity_before": self.quantity_before,
            "quantity_after": self.quantity_after,
            "reason": self.reason,
            "actor_id": self.actor_id,
            "transaction_id": self.transaction_id,
            "occurred_at": to_utc_z(self.occurred_at),
        }
