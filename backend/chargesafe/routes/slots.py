# Overview: Flask API routes for slot stickers and the slot ledger.

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth
from ..services import slot_service
from ..services.concurrency import RemoteUnavailableError
from ..models.slots import SLOT_AVAILABLE, SLOT_OCCUPIED
from ..validation import ValidationError, parse_choice


slots_bp = Blueprint("slots", __name__, url_prefix="/api/slots")


@slots_bp.get("")
@require_auth
def list_slots_route():
    """Slots owned by the shop. Optional ?status=available|occupied."""
    try:
        status = request.args.get("status")
        if status:
            status = parse_choice(status, "status", (SLOT_AVAILABLE, SLOT_OCCUPIED))
        slots = slot_service.list_slots(g.shop_id, status=status)
        return jsonify({"slots": [s.to_dict() for s in slots]}), 200
    except ValidationError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to list slots")
        return jsonify({"error": "Internal server error"}), 500


@slots_bp.get("/labels")
@require_auth
def slot_labels_route():
    """Preview a sticker batch: ?start=SLOT-01&count=20."""
    try:
        try:
            count = int(request.args.get("count", 1))
        except ValueError:
            raise ValidationError("count must be a whole number", details={"field": "count"})
        labels = slot_service.slot_label_batch(request.args.get("start", ""), count)
        return jsonify({"labels": labels}), 200
    except ValidationError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to build slot labels")
        return jsonify({"error": "Internal server error"}), 500


@slots_bp.post("")
@require_auth
def register_slots_route():
    """
    Claim slot ids before printing stickers.

    Body: { "labels": ["SLOT-01", ...] } or { "start": "SLOT-01", "count": 20 }
    """
    try:
        data = request.get_json() or {}
        labels = data.get("labels")
        if labels is None:
            count = data.get("count", 1)
            if isinstance(count, bool) or not isinstance(count, int):
                raise ValidationError("count must be a whole number", details={"field": "count"})
            labels = slot_service.slot_label_batch(data.get("start", ""), count)
        elif not isinstance(labels, list):
            raise ValidationError("labels must be a list", details={"field": "labels"})

        slots = slot_service.register_slots(g.shop_id, labels)
        return jsonify({"slots": [s.to_dict() for s in slots]}), 201

    except ValidationError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except slot_service.SlotOwnershipError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except RemoteUnavailableError as e:
        return jsonify({"error": str(e), "details": e.details}), 503
    except Exception:
        current_app.logger.exception("Failed to register slots")
        return jsonify({"error": "Internal server error"}), 500


@slots_bp.get("/scan/<path:slot_id>")
@require_auth
def scan_slot_route(slot_id):
    """Resolve a scanned slot sticker to checkout or a new check-in."""
    try:
        return jsonify(slot_service.resolve_scan(g.shop_id, slot_id)), 200
    except ValidationError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except slot_service.SlotOwnershipError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except Exception:
        current_app.logger.exception("Failed to resolve slot scan")
        return jsonify({"error": "Internal server error"}), 500


@slots_bp.post("/<path:slot_id>/release")
@require_auth
def release_slot_route(slot_id):
    """Free a slot left bound to a device that is no longer active."""
    try:
        slot = slot_service.release_stale(g.shop_id, slot_id)
        return jsonify({"slot": slot.to_dict()}), 200
    except slot_service.SlotNotFoundError as e:
        return jsonify({"error": str(e), "details": e.details}), 404
    except ValidationError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except slot_service.SlotOccupiedError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except RemoteUnavailableError as e:
        return jsonify({"error": str(e), "details": e.details}), 503
    except Exception:
        current_app.logger.exception("Failed to release slot")
        return jsonify({"error": "Internal server error"}), 500
