# Overview: Flask API routes for catalog operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app

from ..exceptions import GroSaveError
from ..services import inventory_service
from ..validation import coerce_page_args, pagination_envelope
from grosave.time_utils import utcnow


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products_route():
    """
    Active products, soonest expiry first.

    Query: category ("All" is ignored), search (name or brand), page, limit.
    """
    try:
        page, limit = coerce_page_args(request.args)
        products, total = inventory_service.list_products(
            category=request.args.get("category"),
            search=request.args.get("search"),
            page=page,
            limit=limit,
        )
        now = utcnow()
        return jsonify({
            "products": [inventory_service.serialize_product(p, now) for p in products],
            "pagination": pagination_envelope(page, limit, total),
        }), 200
    except Exception:
        current_app.logger.exception("Failed to fetch products")
        return jsonify({"error": "Failed to fetch products"}), 500


@products_bp.get("/categories")
def categories_route():
    try:
        return jsonify({"categories": inventory_service.list_categories()}), 200
    except Exception:
        current_app.logger.exception("Failed to fetch categories")
        return jsonify({"error": "Failed to fetch categories"}), 500


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    """Product detail, including inactive products, with its pricing phase."""
    try:
        product = inventory_service.get_product(product_id)
        if not product:
            return jsonify({"error": "Product not found"}), 404
        return jsonify(inventory_service.serialize_product(product)), 200
    except GroSaveError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to fetch product")
        return jsonify({"error": "Failed to fetch product"}), 500
