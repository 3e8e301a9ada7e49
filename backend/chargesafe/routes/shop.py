# Overview: Flask API routes for the shop profile and data erase.

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth
from ..services import shop_service
from ..services import maintenance_service
from ..services.concurrency import RemoteUnavailableError
from ..validation import ValidationError


shop_bp = Blueprint("shop", __name__, url_prefix="/api/shop")


@shop_bp.get("")
@require_auth
def get_shop_route():
    return jsonify({"shop": g.shop.to_dict()}), 200


@shop_bp.patch("")
@require_auth
def update_shop_route():
    """
    Partial profile update.

    Body keys: shop_name, phone, address, city, slot_count, currency,
    coordinates {lat, lng}
    """
    try:
        data = request.get_json() or {}
        shop = shop_service.update_profile(g.shop, data)
        return jsonify({"shop": shop.to_dict()}), 200
    except ValidationError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to update shop profile")
        return jsonify({"error": "Internal server error"}), 500


@shop_bp.post("/erase")
@require_auth
def erase_shop_route():
    """
    Delete all devices, customers and POS transactions of the shop.

    Body must be { "confirm": "DELETE" }.
    """
    try:
        data = request.get_json() or {}
        if data.get("confirm") != maintenance_service.ERASE_CONFIRMATION:
            return jsonify({
                "error": f'Type "{maintenance_service.ERASE_CONFIRMATION}" to confirm',
            }), 400

        counts = maintenance_service.erase_shop_data(g.shop_id)
        return jsonify({"erased": counts}), 200

    except RemoteUnavailableError as e:
        return jsonify({"error": str(e), "details": e.details}), 503
    except Exception:
        current_app.logger.exception("Failed to erase shop data")
        return jsonify({"error": "Internal server error"}), 500
