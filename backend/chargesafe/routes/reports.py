# Overview: Flask API routes for revenue reports.

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth
from ..services import reporting_service
from ..time_utils import utcnow
from ..validation import ValidationError


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/monthly")
@require_auth
def monthly_report_route():
    """Revenue summary for ?month=YYYY-MM (defaults to the current month)."""
    try:
        month = request.args.get("month") or utcnow().strftime("%Y-%m")
        return jsonify(reporting_service.monthly_summary(g.shop_id, month)), 200
    except ValidationError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to build monthly report")
        return jsonify({"error": "Internal server error"}), 500
