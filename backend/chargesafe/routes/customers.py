# Overview: Flask API routes for the customer directory and trust lookups.

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth
from ..services import customer_service
from ..services.concurrency import RemoteUnavailableError
from ..validation import ValidationError, optional_text, parse_optional_bool


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
def list_customers_route():
    """Directory. Query params: q (name or phone), flagged=true."""
    try:
        customers = customer_service.list_customers(
            g.shop_id,
            search=request.args.get("q"),
            flagged_only=bool(parse_optional_bool(request.args.get("flagged"), "flagged")),
        )
        return jsonify({"customers": [c.to_dict() for c in customers]}), 200
    except ValidationError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to list customers")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/lookup")
@require_auth
def customer_lookup_route():
    """
    Auto-fill for the check-in and POS forms: ?phone=...

    Fewer than 10 digits always answers trust "unknown".
    """
    try:
        result = customer_service.prefill(g.shop_id, request.args.get("phone"))
        return jsonify(result.to_dict()), 200
    except Exception:
        current_app.logger.exception("Failed to look up customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.post("/<path:phone>/flag")
@require_auth
def flag_customer_route(phone):
    """
    Flag or clear a customer's risk status.

    Body: { "flagged": true, "reason": "Disputed fee" }
    """
    try:
        data = request.get_json() or {}
        flagged = parse_optional_bool(data.get("flagged"), "flagged")
        if flagged is None:
            raise ValidationError("flagged is required", details={"field": "flagged"})
        profile = customer_service.set_risk_flag(
            g.shop_id,
            phone,
            flagged,
            reason=optional_text(data, "reason", max_length=255),
        )
        return jsonify({"customer": profile.to_dict()}), 200

    except ValidationError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except customer_service.CustomerNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except RemoteUnavailableError as e:
        return jsonify({"error": str(e), "details": e.details}), 503
    except Exception:
        current_app.logger.exception("Failed to flag customer")
        return jsonify({"error": "Internal server error"}), 500
