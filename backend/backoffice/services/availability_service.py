# Overview: Advisory, read-only availability check for a cart.

"""
WHY ADVISORY: this check runs outside the sale's write unit, so stock can
change between here and the commit. It exists to reject obviously bad carts
fast, with a per-line report, before opening a write transaction.

Correctness does NOT rest on it. stock_service.decrement() re-checks inside
the unit with a conditional UPDATE; do not remove that second check in the
belief that this one already covered it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from ..extensions import db
from ..models import Product

REASON_NOT_FOUND = "product not found"
REASON_INACTIVE = "product inactive"


@dataclass(frozen=True)
class AvailabilityResult:
    product_id: int
    requested_quantity: int
    available: bool
    available_quantity: int | None = None
    reason: str | None = None

    @property
    def is_stock_shortage(self) -> bool:
        return not self.available and self.available_quantity is not None

    def to_dict(self) -> dict:
        data = {
            "product_id": self.product_id,
            "requested_quantity": self.requested_quantity,
            "available": self.available,
            "available_quantity": self.available_quantity,
        }
        if self.reason:
            data["reason"] = self.reason
        return data


def check_availability(lines: Iterable[tuple[int, int]]) -> list[AvailabilityResult]:
    """
    Report availability for (product_id, requested_quantity) pairs.

    Returns one result per input pair, in input order. A line is available
    iff the product exists, is active, and on-hand >= requested.
    """
    lines = list(lines)
    product_ids = {product_id for product_id, _ in lines}

    rows = {}
    if product_ids:
        rows = {
            row.id: row
            for row in db.session.query(Product.id, Product.is_active, Product.quantity_on_hand)
            .filter(Product.id.in_(product_ids))
            .all()
        }

    results = []
    for product_id, requested in lines:
        row = rows.get(product_id)
        if row is None:
            results.append(AvailabilityResult(
                product_id=product_id,
                requested_quantity=requested,
                available=False,
                reason=REASON_NOT_FOUND,
            ))
        elif not row.is_active:
            results.append(AvailabilityResult(
                product_id=product_id,
                requested_quantity=requested,
                available=False,
                reason=REASON_INACTIVE,
            ))
        elif row.quantity_on_hand < requested:
            results.append(AvailabilityResult(
                product_id=product_id,
                requested_quantity=requested,
                available=False,
                available_quantity=row.quantity_on_hand,
                reason=f"insufficient stock, available={row.quantity_on_hand} requested={requested}",
            ))
        else:
            results.append(AvailabilityResult(
                product_id=product_id,
                requested_quantity=requested,
                available=True,
                available_quantity=row.quantity_on_hand,
            ))

    return results


def unavailable(results: Iterable[AvailabilityResult]) -> list[AvailabilityResult]:
    return [r for r in results if not r.available]
