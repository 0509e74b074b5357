# Overview: Flask API routes for wallet operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..exceptions import GroSaveError
from ..services import wallet_service
from ..validation import coerce_page_args, pagination_envelope
from ..decorators import require_auth


wallet_bp = Blueprint("wallet", __name__, url_prefix="/api/wallet")


@wallet_bp.get("/balance")
@require_auth
def balance_route():
    try:
        return jsonify(wallet_service.balance_summary(g.current_user.id)), 200
    except GroSaveError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to fetch wallet")
        return jsonify({"error": "Failed to fetch wallet"}), 500


@wallet_bp.get("/transactions")
@require_auth
def transactions_route():
    """Ledger entries, newest first. Query: page, limit."""
    try:
        page, limit = coerce_page_args(request.args)
        items, total = wallet_service.list_transactions(g.current_user.id, page=page, limit=limit)
        return jsonify({
            "transactions": [t.to_dict() for t in items],
            "pagination": pagination_envelope(page, limit, total),
        }), 200
    except Exception:
        current_app.logger.exception("Failed to fetch transactions")
        return jsonify({"error": "Failed to fetch transactions"}), 500
