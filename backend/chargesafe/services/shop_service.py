# Overview: Service-layer operations for the shop profile.

from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db, change_feed
from ..models import Shop
from ..validation import ValidationError, optional_text, parse_amount
from .concurrency import commit_with_retry

CURRENCIES = ("NGN", "USD", "GHS", "KES")

EDITABLE_TEXT_FIELDS = {
    "shop_name": 120,
    "phone": 32,
    "address": 255,
    "city": 120,
}


def _parse_coordinates(value) -> tuple[float | None, float | None]:
    if value is None:
        return None, None
    try:
        lat = float(value["lat"])
        lng = float(value["lng"])
    except (KeyError, TypeError, ValueError):
        raise ValidationError("coordinates must be {lat, lng}", details={"field": "coordinates"})
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        raise ValidationError("coordinates out of range", details={"field": "coordinates"})
    return lat, lng


def update_profile(shop: Shop, data: dict) -> Shop:
    """
    Apply a partial profile update; unknown keys are ignored.

    Every field is validated before any is applied, so a rejected update
    leaves the shop untouched.
    """
    changes = {}
    for field, max_length in EDITABLE_TEXT_FIELDS.items():
        if field in data:
            value = optional_text(data, field, max_length=max_length)
            if field == "shop_name" and not value:
                raise ValidationError("Shop Name is required.", details={"field": "shop_name"})
            changes[field] = value

    if "slot_count" in data:
        changes["slot_count"] = parse_amount(data.get("slot_count"), "slot_count")

    if "currency" in data:
        currency = str(data.get("currency") or "").upper()
        if currency not in CURRENCIES:
            raise ValidationError(
                f"currency must be one of: {', '.join(CURRENCIES)}",
                details={"field": "currency"},
            )
        changes["currency"] = currency

    if "coordinates" in data:
        changes["latitude"], changes["longitude"] = _parse_coordinates(data.get("coordinates"))

    for field, value in changes.items():
        setattr(shop, field, value)
    commit_with_retry()
    change_feed.publish(shop.id, "shop", "updated", shop.to_dict())
    return shop


def list_shops(search: str | None = None) -> list[Shop]:
    """Active shops, newest first, optionally filtered by name or city."""
    query = db.session.query(Shop).filter(Shop.is_active.is_(True))
    if search and search.strip():
        term = f"%{search.strip().lower()}%"
        query = query.filter(or_(
            db.func.lower(Shop.shop_name).like(term),
            db.func.lower(Shop.city).like(term),
        ))
    return query.order_by(Shop.created_at.desc(), Shop.id.desc()).all()
