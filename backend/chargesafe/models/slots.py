from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

SLOT_AVAILABLE = "available"
SLOT_OCCUPIED = "occupied"


class SlotBinding(db.Model):
    """
    A physical charging bay identified by its printed QR payload.

    Keyed globally by slot_id; owner_shop_id records the shop that claimed
    the id first. device_id is NULL exactly when status is available.

    CONCURRENCY: version_id makes every bind/release a check-and-set, so
    two terminals cannot both claim the same free slot.
    """
    __tablename__ = "slot_bindings"
    __table_args__ = (
        db.Index("ix_slot_bindings_owner_status", "owner_shop_id", "status"),
    )

    slot_id = db.Column(db.String(64), primary_key=True)
    owner_shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    device_id = db.Column(db.Integer, db.ForeignKey("devices.id"), nullable=True, index=True)
    status = db.Column(db.String(16), nullable=False, default=SLOT_AVAILABLE)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    device = db.relationship("Device", foreign_keys=[device_id])
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "slot_id": self.slot_id,
            "owner_shop_id": self.owner_shop_id,
            "device_id": self.device_id,
            "order_number": self.device.order_number if self.device else None,
            "status": self.status,
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
