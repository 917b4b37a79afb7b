"""
Sale arithmetic, in one place.

Every total, balance and payment status in the system is computed here,
from integer cents, so the recorder, the payment service and the history
API can never disagree about rounding or status boundaries.

- line total   = quantity * unit_price - line_discount
- subtotal     = sum(line totals)
- total        = subtotal + tax - discount
- payment status: unpaid (paid == 0), partially_paid (0 < paid < total),
  paid (paid >= total)
- status: completed iff paid, else pending
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from ..models.sales import (
    PAYMENT_PAID,
    PAYMENT_PARTIAL,
    PAYMENT_RECORD_COMPLETED,
    PAYMENT_UNPAID,
    STATUS_COMPLETED,
    STATUS_PENDING,
)


@dataclass(frozen=True)
class SaleTotals:
    subtotal_cents: int
    tax_cents: int
    discount_cents: int
    total_cents: int
    paid_cents: int
    change_cents: int
    balance_due_cents: int
    payment_status: str
    status: str

    def to_dict(self) -> dict:
        return {
            "subtotal_cents": self.subtotal_cents,
            "tax_cents": self.tax_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "paid_cents": self.paid_cents,
            "change_cents": self.change_cents,
            "balance_due_cents": self.balance_due_cents,
            "payment_status": self.payment_status,
            "status": self.status,
        }


def line_total_cents(quantity: int, unit_price_cents: int, discount_cents: int = 0) -> int:
    return quantity * unit_price_cents - discount_cents


def derive_payment_status(total_cents: int, paid_cents: int) -> str:
    if paid_cents <= 0:
        return PAYMENT_UNPAID
    if paid_cents < total_cents:
        return PAYMENT_PARTIAL
    return PAYMENT_PAID


def derive_status(payment_status: str) -> str:
    return STATUS_COMPLETED if payment_status == PAYMENT_PAID else STATUS_PENDING


def compute_totals(
    line_totals: Iterable[int],
    *,
    tax_cents: int = 0,
    discount_cents: int = 0,
    paid_cents: int = 0,
) -> SaleTotals:
    subtotal = sum(line_totals)
    total = subtotal + tax_cents - discount_cents
    payment_status = derive_payment_status(total, paid_cents)

    return SaleTotals(
        subtotal_cents=subtotal,
        tax_cents=tax_cents,
        discount_cents=discount_cents,
        total_cents=total,
        paid_cents=paid_cents,
        change_cents=max(paid_cents - total, 0),
        balance_due_cents=max(total - paid_cents, 0),
        payment_status=payment_status,
        status=derive_status(payment_status),
    )


def totals_for_transaction(tx) -> SaleTotals:
    """Recompute totals for a stored transaction from its recorded facts."""
    paid = sum(p.amount_cents for p in tx.payments if p.status == PAYMENT_RECORD_COMPLETED)
    return compute_totals(
        (item.line_total_cents for item in tx.items),
        tax_cents=tx.tax_cents,
        discount_cents=tx.discount_cents,
        paid_cents=paid,
    )
