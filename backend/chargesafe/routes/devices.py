# Overview: Flask API routes for the device check-in / checkout lifecycle.

# backend/chargesafe/routes/devices.py
"""
Device API routes

Order numbers (CS-0001) identify a device in every URL. The fee reported by
GET endpoints is computed at request time for active devices and frozen
for collected ones.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth
from ..services import device_service
from ..services.concurrency import RemoteUnavailableError
from ..services.slot_service import SlotOccupiedError, SlotOwnershipError
from ..time_utils import utcnow, to_utc_z
from ..validation import ValidationError, parse_optional_bool


devices_bp = Blueprint("devices", __name__, url_prefix="/api/devices")


@devices_bp.post("")
@require_auth
def check_in_route():
    """
    Check a device in.

    Body:
    {
        "description": "Black iPhone 13",
        "type": "Phone",
        "billing_type": "fixed" | "hourly",
        "fixed_fee": 200,          # fixed only
        "hourly_rate": 100,        # hourly only
        "customer_name": "Ada",
        "customer_phone": "+2348012345678",
        "slot_id": "SLOT-01",
        "tag_number": "T12",
        "flag_as_risk": true | false | null
    }
    """
    try:
        data = request.get_json() or {}
        device = device_service.check_in(
            g.shop_id,
            description=data.get("description"),
            billing=device_service.BillingConfig.from_dict(data),
            device_type=data.get("type"),
            customer_name=data.get("customer_name"),
            customer_phone=data.get("customer_phone"),
            slot_id=data.get("slot_id"),
            tag_number=data.get("tag_number"),
            flag_as_risk=parse_optional_bool(data.get("flag_as_risk"), "flag_as_risk"),
        )
        return jsonify({"device": device.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except (SlotOccupiedError, SlotOwnershipError) as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except RemoteUnavailableError as e:
        return jsonify({"error": str(e), "details": e.details}), 503
    except Exception:
        current_app.logger.exception("Failed to check in device")
        return jsonify({"error": "Internal server error"}), 500


@devices_bp.get("")
@require_auth
def list_devices_route():
    """
    List devices.

    Query params:
    - view: active (default) | history | all
    - q: search over order number, customer, description, slot and tag
    """
    try:
        now = utcnow()
        devices = device_service.list_devices(
            g.shop_id,
            view=request.args.get("view", device_service.VIEW_ACTIVE),
            search=request.args.get("q"),
        )
        return jsonify({
            "devices": [d.to_dict(now) for d in devices],
            "as_of": to_utc_z(now),
        }), 200

    except ValidationError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to list devices")
        return jsonify({"error": "Internal server error"}), 500


@devices_bp.get("/<order_number>")
@require_auth
def get_device_route(order_number):
    try:
        device = device_service.get_device(g.shop_id, order_number.upper())
        return jsonify({"device": device.to_dict()}), 200
    except device_service.DeviceNotFoundError as e:
        return jsonify({"error": str(e), "details": e.details}), 404
    except Exception:
        current_app.logger.exception("Failed to load device")
        return jsonify({"error": "Internal server error"}), 500


@devices_bp.get("/<order_number>/fee")
@require_auth
def device_fee_route(order_number):
    """Fee owed right now (polled by the checkout screen)."""
    try:
        now = utcnow()
        fee = device_service.current_fee(g.shop_id, order_number.upper(), now=now)
        return jsonify({
            "order_number": order_number.upper(),
            "fee": fee,
            "as_of": to_utc_z(now),
        }), 200
    except device_service.DeviceNotFoundError as e:
        return jsonify({"error": str(e), "details": e.details}), 404
    except Exception:
        current_app.logger.exception("Failed to compute device fee")
        return jsonify({"error": "Internal server error"}), 500


@devices_bp.post("/<order_number>/ready")
@require_auth
def mark_ready_route(order_number):
    try:
        device = device_service.mark_ready(g.shop_id, order_number.upper())
        return jsonify({"device": device.to_dict()}), 200

    except device_service.DeviceNotFoundError as e:
        return jsonify({"error": str(e), "details": e.details}), 404
    except device_service.InvalidStateError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except RemoteUnavailableError as e:
        return jsonify({"error": str(e), "details": e.details}), 503
    except Exception:
        current_app.logger.exception("Failed to mark device ready")
        return jsonify({"error": "Internal server error"}), 500


@devices_bp.post("/<order_number>/collect")
@require_auth
def collect_route(order_number):
    """
    Hand a device back to its owner.

    Body: { "proof_token": "<scanned slot id or order number>" }

    A slot-bound device needs the scanned slot id; a mismatch answers 422
    and leaves the device untouched.
    """
    try:
        data = request.get_json(silent=True) or {}
        device = device_service.collect(g.shop_id, order_number.upper(), data.get("proof_token"))
        return jsonify({"device": device.to_dict()}), 200

    except device_service.DeviceNotFoundError as e:
        return jsonify({"error": str(e), "details": e.details}), 404
    except device_service.InvalidStateError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except device_service.SlotMismatchError as e:
        return jsonify({"error": str(e), "details": e.details}), 422
    except SlotOwnershipError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except RemoteUnavailableError as e:
        return jsonify({"error": str(e), "details": e.details}), 503
    except Exception:
        current_app.logger.exception("Failed to collect device")
        return jsonify({"error": "Internal server error"}), 500
