# Overview: Read-only catalog listing for the register's product picker.

from sqlalchemy import or_

from ..extensions import db
from ..models import Product


def contains_pattern(term: str) -> str:
    """Substring LIKE pattern with % and _ matched literally (escape="\\")."""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def paginate(query, page: int, per_page: int) -> tuple[list, dict]:
    """Apply offset/limit and build the standard pagination block."""
    page = max(page, 1)
    total = query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    rows = query.offset((page - 1) * per_page).limit(per_page).all()

    return rows, {
        "page": page,
        "per_page": per_page,
        "total": total,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_prev": page > 1,
    }


def list_available_products(
    search: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Active products with stock on hand, optionally filtered by name/SKU.

    Args:
        search: Case-insensitive substring of name or SKU
        page: Page number (1-indexed). If None, returns all items.
        per_page: Items per page (default 20, max 100)
    """
    base_query = (
        db.session.query(Product)
        .filter(Product.is_active.is_(True), Product.quantity_on_hand > 0)
        .order_by(Product.name.asc(), Product.id.asc())
    )
    if search:
        pattern = contains_pattern(search.strip())
        base_query = base_query.filter(or_(
            Product.name.ilike(pattern, escape="\\"),
            Product.sku.ilike(pattern, escape="\\"),
        ))

    if page is None:
        products = base_query.all()
        return {
            "items": [p.to_dict() for p in products],
            "count": len(products),
        }

    per_page = max(min(per_page or 20, 100), 1)
    products, pagination = paginate(base_query, page, per_page)

    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
        "pagination": pagination,
    }
