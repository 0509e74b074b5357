# Overview: Flask API routes for order operations; parses input and returns JSON responses.

# backend/grosave/routes/orders.py
"""
Order reservation and lifecycle API routes

All routes act on the authenticated user's own orders. Another user's
order is indistinguishable from a missing one (404).
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..exceptions import GroSaveError, SlotCapacityExceededError
from ..services import order_service
from ..validation import require_json, require_fields, coerce_positive_int
from ..decorators import require_auth


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("/reserve")
@require_auth
def reserve_route():
    """
    Reserve units of a product for pickup.

    Body: productId, quantity, pickupLocationId, pickupTimeSlot, pickupDate,
    optional idempotencyKey (or Idempotency-Key header).

    Returns 201 with the new order, or 200 with the original order when the
    idempotency key was already used.
    """
    try:
        data = require_json(request.get_json(silent=True))
        require_fields(data, "productId", "quantity", "pickupLocationId", "pickupTimeSlot", "pickupDate")

        # A body key, whatever its value, wins over the header
        if "idempotencyKey" in data:
            idempotency_key = data["idempotencyKey"]
        else:
            idempotency_key = request.headers.get("Idempotency-Key")

        result = order_service.create_reservation(
            user_id=g.current_user.id,
            product_id=coerce_positive_int(data["productId"], "productId"),
            quantity=data["quantity"],
            pickup_location_id=coerce_positive_int(data["pickupLocationId"], "pickupLocationId"),
            pickup_date=data["pickupDate"],
            pickup_time_slot=data["pickupTimeSlot"],
            idempotency_key=idempotency_key,
        )

        return jsonify({"success": True, "order": result.order.to_dict()}), 201 if result.created else 200

    except SlotCapacityExceededError as e:
        current_app.logger.warning(
            "Slot capacity rejection: user=%s location=%s date=%s slot=%s",
            g.current_user.id, data.get("pickupLocationId"), data.get("pickupDate"), data.get("pickupTimeSlot"),
        )
        return jsonify(e.to_dict()), e.status_code
    except GroSaveError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Failed to create order"}), 500


@orders_bp.get("/active")
@require_auth
def active_orders_route():
    try:
        orders = order_service.list_active_orders(g.current_user.id)
        return jsonify({"orders": [o.to_dict() for o in orders]}), 200
    except Exception:
        current_app.logger.exception("Failed to list active orders")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/past")
@require_auth
def past_orders_route():
    try:
        orders = order_service.list_past_orders(g.current_user.id)
        return jsonify({"orders": [o.to_dict() for o in orders]}), 200
    except Exception:
        current_app.logger.exception("Failed to list past orders")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    """Order detail with its event trail."""
    try:
        order = order_service.get_order(order_id, g.current_user.id)
        payload = order.to_dict()
        payload["events"] = [e.to_dict() for e in order.events]
        return jsonify({"order": payload}), 200
    except GroSaveError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get order")
        return jsonify({"error": "Internal server error"}), 500


def _lifecycle_action(action, order_id: int, failure_message: str):
    try:
        action(order_id, g.current_user.id)
        return jsonify({"success": True}), 200
    except GroSaveError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception(failure_message)
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/cancel")
@require_auth
def cancel_order_route(order_id: int):
    """Cancel a confirmed or ready order; coins are refunded in full."""
    return _lifecycle_action(order_service.cancel_order, order_id, "Failed to cancel order")


@orders_bp.post("/<int:order_id>/ready")
@require_auth
def ready_order_route(order_id: int):
    return _lifecycle_action(order_service.mark_ready, order_id, "Failed to mark order ready")


@orders_bp.post("/<int:order_id>/scanned")
@require_auth
def scanned_order_route(order_id: int):
    return _lifecycle_action(order_service.mark_scanned, order_id, "Failed to mark order scanned")


@orders_bp.post("/<int:order_id>/complete")
@require_auth
def complete_order_route(order_id: int):
    return _lifecycle_action(order_service.complete_order, order_id, "Failed to complete order")
