from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Shop(db.Model):
    """
    Tenant root and owner account in one row.

    MULTI-TENANT: Every device, customer, POS transaction, session and
    document sequence carries shop_id. Slots are keyed globally but record
    the owning shop.

    WHY: The business runs one owner-operator account per shop, so the
    authenticated identity and the tenant are the same thing.
    """
    __tablename__ = "shops"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    password_hash = db.Column(db.String(255), nullable=False)

    shop_name = db.Column(db.String(120), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    city = db.Column(db.String(120), nullable=True)
    latitude = db.Column(db.Float, nullable=True)
    longitude = db.Column(db.Float, nullable=True)
    slot_count = db.Column(db.Integer, nullable=False, default=0)
    currency = db.Column(db.String(8), nullable=False, default="NGN")

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def __repr__(self) -> str:
        return f"<Shop id={self.id} name={self.shop_name!r}>"

    def to_dict(self) -> dict:
        coordinates = None
        if self.latitude is not None and self.longitude is not None:
            coordinates = {"lat": self.latitude, "lng": self.longitude}
        return {
            "id": self.id,
            "email": self.email,
            "shop_name": self.shop_name,
            "phone": self.phone,
            "address": self.address,
            "city": self.city,
            "coordinates": coordinates,
            "slot_count": self.slot_count,
            "currency": self.currency,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

    def to_public_dict(self) -> dict:
        """Directory listing: what another shop may see."""
        data = self.to_dict()
        return {
            key: data[key]
            for key in ("id", "shop_name", "city", "phone", "address", "coordinates", "slot_count", "created_at")
        }
