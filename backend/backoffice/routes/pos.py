# Overview: Flask API routes for POS sales; parses input and returns JSON responses.

# backend/backoffice/routes/pos.py
"""POS terminal API: sales, stock checks, history, payments and voids."""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_actor
from ..errors import CommitFailure, ItemsUnavailableError, NotFoundError, ValidationError
from ..services import (
    availability_service,
    history_service,
    payment_service,
    products_service,
    sale_service,
)
from ..services.notification_service import get_notifier
from ..validation import (
    bounded_int,
    parse_check_stock_request,
    parse_history_filters,
    parse_payment_request,
    parse_sale_request,
)


pos_bp = Blueprint("pos", __name__, url_prefix="/api/pos")


def _error(e):
    return jsonify(e.to_dict()), e.status_code


@pos_bp.post("/transactions")
@require_actor
def create_transaction_route():
    """
    Process a sale: stock check, atomic commit, then notifications.

    Returns:
    - 201: sale committed (body: transaction + inventory_updates)
    - 200: idempotent replay of an already committed sale
    - 400: validation failure or items unavailable (per-line details)
    - 500: commit failed; nothing was written
    """
    try:
        sale = parse_sale_request(request.get_json(silent=True))
        result = sale_service.process_sale(
            sale,
            cashier_id=g.actor_id,
            notifier=get_notifier(),
        )

        body = result.to_dict()
        body["success"] = True
        return jsonify(body), 200 if result.replayed else 201

    except (ValidationError, ItemsUnavailableError, NotFoundError) as e:
        return jsonify(e.to_dict()), 400
    except CommitFailure as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to process sale")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.post("/check-stock")
@require_actor
def check_stock_route():
    """Advisory availability for a cart; nothing is reserved."""
    try:
        lines = parse_check_stock_request(request.get_json(silent=True))
        results = availability_service.check_availability(lines)

        return jsonify({
            "all_available": all(r.available for r in results),
            "items": [r.to_dict() for r in results],
        }), 200

    except ValidationError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to check stock")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.get("/transactions")
@require_actor
def list_transactions_route():
    try:
        filters = parse_history_filters(
            request.args,
            default_limit=current_app.config["POS_HISTORY_DEFAULT_LIMIT"],
            max_limit=current_app.config["POS_HISTORY_MAX_LIMIT"],
        )
        return jsonify(history_service.list_transactions(filters)), 200

    except ValidationError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to list transactions")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.get("/transactions/<int(max=2147483647):transaction_id>")
@require_actor
def get_transaction_route(transaction_id: int):
    try:
        tx = history_service.get_transaction(transaction_id)
        return jsonify({"transaction": history_service.serialize_transaction(tx)}), 200

    except NotFoundError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to load transaction")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.post("/transactions/<int(max=2147483647):transaction_id>/payments")
@require_actor
def add_payment_route(transaction_id: int):
    """
    Apply a further tender to a pending transaction.

    Returns:
    - 201: payment recorded (body: updated transaction)
    - 400: invalid tender, voided or already paid
    - 404: transaction not found
    """
    try:
        payment = parse_payment_request(request.get_json(silent=True))
        tx = payment_service.add_payment(
            transaction_id,
            payment_method_id=payment.payment_method_id,
            amount_cents=payment.amount_cents,
            reference_number=payment.reference_number,
            actor_id=g.actor_id,
            notifier=get_notifier(),
        )
        return jsonify({"transaction": history_service.serialize_transaction(tx)}), 201

    except (ValidationError, NotFoundError, CommitFailure) as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to add payment")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.post("/transactions/<int(max=2147483647):transaction_id>/void")
@require_actor
def void_transaction_route(transaction_id: int):
    """
    Void a sale, restock its items and void its payments.

    Body: {"reason": "..."}
    """
    try:
        data = request.get_json(silent=True) or {}
        result = sale_service.void_transaction(
            transaction_id,
            actor_id=g.actor_id,
            reason=data.get("reason"),
            notifier=get_notifier(),
        )
        return jsonify(result.to_dict()), 200

    except (ValidationError, NotFoundError, CommitFailure) as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to void transaction")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.get("/products")
@require_actor
def list_products_route():
    """Active, in-stock products for the register (?search=&page=&per_page=)."""
    try:
        page = request.args.get("page")
        per_page = request.args.get("per_page")
        result = products_service.list_available_products(
            search=request.args.get("search"),
            page=bounded_int(page, "page", minimum=1) if page is not None else None,
            per_page=bounded_int(per_page, "per_page", minimum=1) if per_page is not None else None,
        )
        return jsonify(result), 200

    except ValidationError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to list products")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.get("/payment-methods")
@require_actor
def list_payment_methods_route():
    methods = payment_service.list_payment_methods()
    return jsonify({"payment_methods": [m.to_dict() for m in methods]}), 200
