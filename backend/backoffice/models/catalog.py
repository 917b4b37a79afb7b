from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Product(db.Model):
    """
    Sellable catalog item.

    quantity_on_hand is the live stock figure. It is written ONLY through
    stock_service (conditional UPDATE + StockMovement audit row); never
    assign it directly. The CHECK constraint is the last line of defence
    for the non-negative invariant.

    Catalog management (create / rename / retire) is owned elsewhere; this
    service only reads names, SKUs and prices to snapshot them into sales.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("quantity_on_hand >= 0", name="ck_products_quantity_non_negative"),
        db.Index("ix_products_name", "name"),
        db.Index("ix_products_active_quantity", "is_active", "quantity_on_hand"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(64), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    # Authoritative storage in cents (frontend may only format for display)
    price_cents = db.Column(db.Integer, nullable=True)

    quantity_on_hand = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r} qty={self.quantity_on_hand}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "price_cents": self.price_cents,
            "quantity_on_hand": self.quantity_on_hand,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class PaymentMethod(db.Model):
    """
    Tender types accepted at the register (cash, card, UPI, ...).

    TYPES: cash, card, digital, bank_transfer, other
    requires_reference: card/digital tenders must carry an auth or
    reference code on every payment.
    """
    __tablename__ = "payment_methods"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    code = db.Column(db.String(20), nullable=False, unique=True)
    type = db.Column(db.String(32), nullable=False, default="cash")
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    requires_reference = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<PaymentMethod id={self.id} code={self.code!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "type": self.type,
            "is_active": self.is_active,
            "requires_reference": self.requires_reference,
        }
