# Overview: Read-only transaction history for terminals and back-office review.

from __future__ import annotations

from sqlalchemy import or_

from ..errors import NotFoundError
from ..extensions import db
from ..models import PosTransaction
from ..validation import HistoryFilters
from . import pricing
from .products_service import contains_pattern, paginate


def serialize_transaction(tx: PosTransaction) -> dict:
    """Transaction with lines, tenders and the balance still due."""
    data = tx.to_dict(include_lines=True)
    data["balance_due_cents"] = pricing.totals_for_transaction(tx).balance_due_cents
    return data


def list_transactions(filters: HistoryFilters | None = None) -> dict:
    """
    Paginated history, newest first.

    Filters combine with AND; `search` matches transaction number, customer
    name or phone (case-insensitive substring).
    """
    filters = filters or HistoryFilters()

    query = db.session.query(PosTransaction)

    if filters.status:
        query = query.filter(PosTransaction.status == filters.status)
    if filters.payment_status:
        query = query.filter(PosTransaction.payment_status == filters.payment_status)
    if filters.cashier_id is not None:
        query = query.filter(PosTransaction.cashier_id == filters.cashier_id)
    if filters.customer_id is not None:
        query = query.filter(PosTransaction.customer_id == filters.customer_id)
    if filters.start_date is not None:
        query = query.filter(PosTransaction.created_at >= filters.start_date)
    if filters.end_date is not None:
        query = query.filter(PosTransaction.created_at <= filters.end_date)
    if filters.search:
        pattern = contains_pattern(filters.search)
        query = query.filter(or_(
            PosTransaction.transaction_number.ilike(pattern, escape="\\"),
            PosTransaction.customer_name.ilike(pattern, escape="\\"),
            PosTransaction.customer_phone.ilike(pattern, escape="\\"),
        ))

    query = query.order_by(PosTransaction.created_at.desc(), PosTransaction.id.desc())
    rows, pagination = paginate(query, filters.page, filters.limit)

    return {
        "transactions": [serialize_transaction(tx) for tx in rows],
        "pagination": pagination,
    }


def get_transaction(transaction_id: int) -> PosTransaction:
    tx = db.session.get(PosTransaction, transaction_id)
    if tx is None:
        raise NotFoundError("Transaction not found", details={"transaction_id": transaction_id})
    return tx
