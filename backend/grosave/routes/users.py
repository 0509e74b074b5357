# Overview: Flask API routes for user profile operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..exceptions import GroSaveError
from ..services import user_service
from ..validation import require_json
from ..decorators import require_auth


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.post("/register")
@require_auth
def register_route():
    """Complete onboarding: saves profile fields and marks the user verified."""
    try:
        data = require_json(request.get_json(silent=True))
        user = user_service.register_user(g.current_user.id, data)
        return jsonify({"success": True, "user": user.to_dict()}), 200
    except GroSaveError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to register user")
        return jsonify({"error": "Registration failed"}), 500


@users_bp.get("/profile")
@require_auth
def get_profile_route():
    try:
        user = user_service.get_user(g.current_user.id)
        return jsonify({"success": True, "user": user.to_dict()}), 200
    except GroSaveError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to fetch profile")
        return jsonify({"error": "Failed to fetch profile"}), 500


@users_bp.put("/profile")
@require_auth
def update_profile_route():
    """Partial update; only provided, valid fields are written."""
    try:
        data = require_json(request.get_json(silent=True))
        user = user_service.update_profile(g.current_user.id, data)
        return jsonify({"success": True, "user": user.to_dict()}), 200
    except GroSaveError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update profile")
        return jsonify({"error": "Update failed"}), 500
