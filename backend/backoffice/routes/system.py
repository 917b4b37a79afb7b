# backend/backoffice/routes/system.py
"""
System health endpoint.

Liveness plus a database round trip, so a load balancer can take an
instance whose store is unreachable out of rotation.
"""

import time
from flask import Blueprint, current_app

from ..extensions import NOTIFIER_EXTENSION_KEY, db
from ..models import Product, PosTransaction
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        product_count = db.session.query(Product).count()
        transaction_count = db.session.query(PosTransaction).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "products": product_count,
                "transactions": transaction_count,
            }
        }
    except Exception:
        db.session.rollback()
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: database reachable
    - 503: database unhealthy
    """
    start_time = time.time()

    database_health = check_database_health()
    notifier = current_app.extensions.get(NOTIFIER_EXTENSION_KEY)

    if database_health["status"] == "unhealthy":
        overall_status = "unhealthy"
        http_status = 503
    else:
        overall_status = "healthy"
        http_status = 200

    total_elapsed_ms = (time.time() - start_time) * 1000

    response = {
        "status": overall_status,
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
            "notifier": type(notifier).__name__ if notifier is not None else None,
        }
    }

    return response, http_status
