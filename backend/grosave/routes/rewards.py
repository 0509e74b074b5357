# Overview: Flask API routes for impact figures and coin earning; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..exceptions import GroSaveError
from ..models.ledger import EARN_AD, EARN_SURVEY, EARN_REFERRAL
from ..services import earn_service, impact_service
from ..validation import require_json
from ..decorators import require_auth


rewards_bp = Blueprint("rewards", __name__, url_prefix="/api")


@rewards_bp.get("/impact")
@require_auth
def impact_route():
    """Food rescued, CO2 avoided and rupees saved over recent completed orders."""
    try:
        return jsonify(impact_service.get_impact(g.current_user.id)), 200
    except Exception:
        current_app.logger.exception("Failed to compute impact")
        return jsonify({"error": "Failed to compute impact"}), 500


def _earn(earn_type: str):
    try:
        data = require_json(request.get_json(silent=True))
        credited = earn_service.earn(g.current_user.id, earn_type, data)
        return jsonify({"success": True, "credited": credited}), 200
    except GroSaveError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to credit %s reward", earn_type)
        return jsonify({"error": "Failed to earn"}), 500


@rewards_bp.post("/earn/ad")
@require_auth
def earn_ad_route():
    return _earn(EARN_AD)


@rewards_bp.post("/earn/survey")
@require_auth
def earn_survey_route():
    return _earn(EARN_SURVEY)


@rewards_bp.post("/earn/referral")
@require_auth
def earn_referral_route():
    return _earn(EARN_REFERRAL)
