# Overview: Flask API route for the directory of registered shops.

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_auth
from ..services import shop_service


shops_bp = Blueprint("shops", __name__, url_prefix="/api/shops")


@shops_bp.get("")
@require_auth
def list_shops_route():
    """Registered shops, newest first. Query param: q (shop name or city)."""
    try:
        shops = shop_service.list_shops(search=request.args.get("q"))
        return jsonify({"shops": [s.to_public_dict() for s in shops]}), 200
    except Exception:
        current_app.logger.exception("Failed to list shops")
        return jsonify({"error": "Internal server error"}), 500
