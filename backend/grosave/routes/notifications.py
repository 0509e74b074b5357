# Overview: Flask API routes for notification operations; parses input and returns JSON responses.

from flask import Blueprint, jsonify, g, current_app

from ..exceptions import GroSaveError
from ..services import notification_service
from ..decorators import require_auth


notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


@notifications_bp.get("")
@require_auth
def list_notifications_route():
    """Latest 100 notifications, newest first."""
    try:
        notes = notification_service.list_notifications(g.current_user.id)
        return jsonify({
            "notifications": [n.to_dict() for n in notes],
            "unreadCount": notification_service.unread_count(g.current_user.id),
        }), 200
    except Exception:
        current_app.logger.exception("Failed to fetch notifications")
        return jsonify({"error": "Failed to fetch notifications"}), 500


@notifications_bp.post("/<int:notification_id>/read")
@require_auth
def mark_read_route(notification_id: int):
    try:
        notification_service.mark_read(notification_id, g.current_user.id)
        return jsonify({"success": True}), 200
    except GroSaveError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to mark notification read")
        return jsonify({"error": "Failed to mark read"}), 500


@notifications_bp.post("/read-all")
@require_auth
def mark_all_read_route():
    try:
        updated = notification_service.mark_all_read(g.current_user.id)
        return jsonify({"success": True, "updated": updated}), 200
    except Exception:
        current_app.logger.exception("Failed to mark all notifications read")
        return jsonify({"error": "Failed to mark all read"}), 500
