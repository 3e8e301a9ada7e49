# Overview: Flask API routes for POS agent transactions and the daily balancer.

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth
from ..services import pos_service
from ..services.concurrency import RemoteUnavailableError
from ..models.pos import TX_TYPES
from ..time_utils import parse_iso_datetime
from ..validation import ValidationError, parse_amount, parse_choice, parse_optional_bool


pos_bp = Blueprint("pos", __name__, url_prefix="/api/pos")


@pos_bp.post("/transactions")
@require_auth
def record_transaction_route():
    """
    Record a withdrawal or deposit.

    Body:
    {
        "type": "withdrawal" | "deposit",
        "amount": 10000,
        "fee": 200,                # optional, defaults to 0
        "method": "cash" | "transfer",
        "customer_name": "Ada",
        "customer_phone": "08012345678",
        "flag_as_risk": true | false | null
    }
    """
    try:
        data = request.get_json() or {}
        tx = pos_service.record_transaction(
            g.shop_id,
            tx_type=data.get("type"),
            amount=data.get("amount"),
            fee=data.get("fee"),
            method=data.get("method"),
            customer_name=data.get("customer_name"),
            customer_phone=data.get("customer_phone"),
            flag_as_risk=parse_optional_bool(data.get("flag_as_risk"), "flag_as_risk"),
        )
        return jsonify({"transaction": tx.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except RemoteUnavailableError as e:
        return jsonify({"error": str(e), "details": e.details}), 503
    except Exception:
        current_app.logger.exception("Failed to record POS transaction")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.get("/transactions")
@require_auth
def list_transactions_route():
    """
    Transactions of one day with the expected balance.

    Query params: date (ISO, default today), opening_cash, opening_float
    """
    try:
        day = parse_iso_datetime(request.args.get("date"))
        opening_cash = parse_amount(request.args.get("opening_cash"), "opening_cash", required=False) or 0
        opening_float = parse_amount(request.args.get("opening_float"), "opening_float", required=False) or 0

        transactions = pos_service.transactions_for_day(g.shop_id, day)
        summary = pos_service.balance(transactions, opening_cash, opening_float)
        return jsonify({
            "transactions": [tx.to_dict() for tx in transactions],
            "summary": summary.to_dict(),
        }), 200

    except ValidationError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except ValueError as e:
        return jsonify({"error": f"Invalid date: {e}"}), 400
    except Exception:
        current_app.logger.exception("Failed to list POS transactions")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.get("/suggested-fee")
@require_auth
def suggested_fee_route():
    """?type=withdrawal&amount=7500 -> {"fee": 200}"""
    try:
        tx_type = parse_choice(request.args.get("type"), "type", TX_TYPES)
        amount = parse_amount(request.args.get("amount"), "amount")
        return jsonify({"fee": pos_service.suggested_fee(tx_type, amount)}), 200
    except ValidationError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
