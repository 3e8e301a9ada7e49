# Overview: Flask API routes for shop registration and sessions.

# backend/chargesafe/routes/auth.py
"""
Authentication API routes

A shop registers once with its owner's email and password; every terminal
then logs in with those credentials and receives a bearer token.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..validation import ValidationError, ConflictError, parse_amount
from ..decorators import require_auth, bearer_token


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/register")
def register_route():
    """
    Register a new shop and sign it in.

    Body: email, password, shop_name, optional phone, address, city,
    slots, currency.
    """
    try:
        data = request.get_json() or {}
        shop = auth_service.register_shop(
            email=data.get("email"),
            password=data.get("password") or "",
            shop_name=data.get("shop_name"),
            phone=data.get("phone"),
            address=data.get("address"),
            city=data.get("city"),
            slot_count=parse_amount(data.get("slots"), "slots", required=False) or 0,
            currency=data.get("currency"),
        )
        _, token = session_service.create_session(
            shop.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
        return jsonify({"shop": shop.to_dict(), "token": token}), 201

    except ValidationError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except ConflictError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except Exception:
        current_app.logger.exception("Failed to register shop")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/login")
def login_route():
    """Authenticate a shop and create a session token."""
    try:
        data = request.get_json() or {}
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]):
            return jsonify({"error": "email and password required"}), 400

        shop = auth_service.authenticate(email, password)
        if not shop:
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            shop.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
        return jsonify({
            "shop": shop.to_dict(),
            "token": token,
            "expires_at": session.to_dict()["expires_at"],
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login shop")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the current session token."""
    try:
        session_service.revoke_session(bearer_token())
        return jsonify({"message": "Logged out"}), 200
    except Exception:
        current_app.logger.exception("Failed to logout shop")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    """Current shop for a valid session (used on app start-up)."""
    return jsonify({"shop": g.shop.to_dict()}), 200
