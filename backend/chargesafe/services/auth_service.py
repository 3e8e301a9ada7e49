# Overview: Service-layer operations for shop accounts; password hashing and sign-in.

"""
Shop Account Service

WHY: Every shop is an owner-operated tenant; the owner's credentials are the
shop's credentials. Uses bcrypt for password hashing and validates password
strength at registration.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters required
- Must contain uppercase, lowercase, digit, and special char
- Session tokens managed separately (see session_service.py)
"""

import re

import bcrypt
from flask import current_app, has_app_context

from ..extensions import db
from ..models import Shop
from ..validation import ValidationError, ConflictError


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Hash password using bcrypt with cost factor 12 after strength validation."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt verification; malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def normalize_email(email: str | None) -> str:
    email = (email or "").strip().lower()
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("A valid email is required", details={"field": "email"})
    return email


def register_shop(
    email: str,
    password: str,
    shop_name: str,
    phone: str | None = None,
    address: str | None = None,
    city: str | None = None,
    slot_count: int = 0,
    currency: str | None = None,
) -> Shop:
    """
    Create a shop and its owner credentials.

    Raises ValidationError for bad input, PasswordValidationError for a
    weak password and ConflictError if the email is already registered.
    """
    email = normalize_email(email)
    shop_name = (shop_name or "").strip()
    if not shop_name:
        raise ValidationError("Shop Name is required.", details={"field": "shop_name"})

    if db.session.query(Shop).filter_by(email=email).first():
        raise ConflictError("An account with this email already exists")

    if currency is None:
        currency = current_app.config.get("DEFAULT_CURRENCY", "NGN") if has_app_context() else "NGN"

    shop = Shop(
        email=email,
        password_hash=hash_password(password),
        shop_name=shop_name,
        phone=phone,
        address=address,
        city=city,
        slot_count=slot_count or 0,
        currency=currency,
        is_active=True,
    )
    db.session.add(shop)
    db.session.commit()
    return shop


def authenticate(email: str, password: str) -> Shop | None:
    """Return the active shop for valid credentials, otherwise None."""
    email = (email or "").strip().lower()
    shop = db.session.query(Shop).filter_by(email=email).first()
    if not shop or not shop.is_active:
        return None
    if not verify_password(password or "", shop.password_hash):
        return None
    return shop
