# backend/backoffice/routes/inventory.py
"""
Inventory routes: manual adjustments, stock summary and audit trail.

Mutating routes require an acting user (X-Actor-Id). Every adjustment is
written through the stock ledger, so it carries a reason and a movement
row like any sale decrement, and is announced on the inventory channel.
"""
from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_actor
from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..services import stock_service
from ..services.notification_service import CHANNEL_INVENTORY, EVENT_INVENTORY_UPDATED, get_notifier
from ..validation import bounded_int, parse_stock_adjustment


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _threshold_arg() -> int:
    raw = request.args.get("threshold")
    if raw is None:
        return current_app.config["POS_LOW_STOCK_THRESHOLD"]
    return bounded_int(raw, "threshold", minimum=0)


@inventory_bp.post("/adjust")
@require_actor
def adjust_stock_route():
    """
    Adjust on-hand quantity by delta or to an absolute target.

    Body: {"product_id", "quantity_delta" | "target_quantity", "reason"}
    """
    try:
        adjustment = parse_stock_adjustment(request.get_json(silent=True))
        change = stock_service.adjust_stock(
            adjustment.product_id,
            delta=adjustment.quantity_delta,
            target_quantity=adjustment.target_quantity,
            reason=adjustment.reason,
            actor_id=g.actor_id,
        )
    except (ValidationError, InsufficientStockError, NotFoundError) as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Internal server error"}), 500

    current_app.logger.info(
        "Stock adjusted for %s: %s -> %s (%s)",
        change.sku, change.old_quantity, change.new_quantity, change.movement_type,
    )
    try:
        get_notifier().publish(CHANNEL_INVENTORY, EVENT_INVENTORY_UPDATED, change.to_event())
    except Exception:
        current_app.logger.exception("Notification failed for stock adjustment on %s", change.sku)

    return jsonify({"movement": change.to_dict()}), 200


@inventory_bp.get("/summary")
@require_actor
def inventory_summary_route():
    try:
        summary = stock_service.get_inventory_summary(low_stock_threshold=_threshold_arg())
        return jsonify({"summary": summary}), 200
    except ValidationError as e:
        return jsonify(e.to_dict()), 400


@inventory_bp.get("/low-stock")
@require_actor
def low_stock_route():
    try:
        threshold = _threshold_arg()
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    products = stock_service.list_low_stock(threshold)
    return jsonify({
        "threshold": threshold,
        "products": [p.to_dict() for p in products],
    }), 200


@inventory_bp.get("/<int(max=2147483647):product_id>/movements")
@require_actor
def list_movements_route(product_id: int):
    try:
        movements = stock_service.list_movements(product_id)
        return jsonify({"movements": [m.to_dict() for m in movements]}), 200
    except NotFoundError as e:
        return jsonify(e.to_dict()), 404
