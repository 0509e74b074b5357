# Overview: Flask API routes for pickup locations and slots; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app

from ..exceptions import GroSaveError, ValidationError
from ..services import slot_service
from ..validation import coerce_positive_int
from grosave.time_utils import parse_calendar_day


pickup_bp = Blueprint("pickup", __name__, url_prefix="/api")


@pickup_bp.get("/pickup-locations")
def locations_route():
    """
    Active locations with the legacy `timeSlots` list and the
    capacity-managed `slots`.
    """
    try:
        return jsonify({"locations": slot_service.list_locations()}), 200
    except Exception:
        current_app.logger.exception("Failed to fetch locations")
        return jsonify({"error": "Failed to fetch locations"}), 500


@pickup_bp.get("/pickup-slots")
def slots_route():
    """
    Slots of one location on one day.

    Query: pickupLocationId (or locationId) and date (YYYY-MM-DD).
    Only slots already provisioned are listed.
    """
    try:
        location_id = request.args.get("pickupLocationId") or request.args.get("locationId")
        date_arg = request.args.get("date")
        if not location_id or not date_arg:
            return jsonify({"error": "locationId/pickupLocationId and date are required"}), 400

        location_id = coerce_positive_int(location_id, "locationId")
        try:
            day = parse_calendar_day(date_arg)
        except ValueError:
            raise ValidationError("date must be a YYYY-MM-DD date")

        slots = slot_service.list_slots(location_id, day)
        return jsonify({"slots": [s.to_dict() for s in slots]}), 200

    except GroSaveError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to fetch slots")
        return jsonify({"error": "Failed to fetch slots"}), 500
