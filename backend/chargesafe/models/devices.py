from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..billing import accrued_fee
from ..time_utils import to_utc_z, utcnow

STATUS_CHARGING = "charging"
STATUS_READY = "ready"
STATUS_COLLECTED = "collected"
ACTIVE_STATUSES = (STATUS_CHARGING, STATUS_READY)

DEVICE_TYPES = ("Phone", "Power Bank", "Laptop", "Other")


class Device(db.Model):
    """
    A physical item left at the shop for charging.

    LIFECYCLE: charging -> ready -> collected, or charging -> collected.
    collected is terminal; end_time and final_fee are set exactly once,
    on that transition.

    BILLING: billing_type is immutable. fixed_fee is set only for fixed
    billing, hourly_rate only for hourly billing. final_fee freezes the
    amount owed at collection.
    """
    __tablename__ = "devices"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "order_number", name="uq_devices_shop_order"),
        db.Index("ix_devices_shop_status", "shop_id", "status"),
        db.Index("ix_devices_shop_slot", "shop_id", "slot_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    order_number = db.Column(db.String(32), nullable=False)  # CS-0001

    slot_id = db.Column(db.String(64), nullable=True)
    tag_number = db.Column(db.String(64), nullable=True)

    device_type = db.Column(db.String(32), nullable=False, default="Phone")
    description = db.Column(db.String(255), nullable=False)

    customer_name = db.Column(db.String(128), nullable=False)
    customer_phone = db.Column(db.String(32), nullable=True, index=True)

    billing_type = db.Column(db.String(16), nullable=False)  # fixed, hourly
    fixed_fee = db.Column(db.Integer, nullable=True)
    hourly_rate = db.Column(db.Integer, nullable=True)
    final_fee = db.Column(db.Integer, nullable=True)

    status = db.Column(db.String(16), nullable=False, default=STATUS_CHARGING)
    start_time = db.Column(db.DateTime, nullable=False, index=True)
    ready_at = db.Column(db.DateTime, nullable=True)
    end_time = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    shop = db.relationship("Shop", backref=db.backref("devices", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def fee_at(self, now: datetime | None = None) -> int:
        return accrued_fee(
            self.billing_type,
            self.fixed_fee,
            self.hourly_rate,
            self.start_time,
            now or utcnow(),
            is_finalized=self.status == STATUS_COLLECTED,
            frozen_fee=self.final_fee,
        )

    def to_dict(self, now: datetime | None = None) -> dict:
        return {
            "id": self.id,
            "order_number": self.order_number,
            "shop_id": self.shop_id,
            "slot_id": self.slot_id,
            "tag_number": self.tag_number,
            "type": self.device_type,
            "description": self.description,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "billing_type": self.billing_type,
            "fixed_fee": self.fixed_fee,
            "hourly_rate": self.hourly_rate,
            "fee": self.fee_at(now),
            "status": self.status,
            "start_time": to_utc_z(self.start_time),
            "ready_at": to_utc_z(self.ready_at),
            "end_time": to_utc_z(self.end_time),
            "version_id": self.version_id,
        }


class DocumentSequence(db.Model):
    """
    Atomic per-shop number sequences.

    WHY: Order numbers are allocated concurrently by several terminals and
    must never repeat, even after a shop erases its data.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "document_type", name="uq_doc_sequences_shop_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    document_type = db.Column(db.String(32), nullable=False, index=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
