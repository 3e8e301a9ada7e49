from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class CustomerProfile(db.Model):
    """
    Per-shop customer directory entry keyed by phone number.

    INVARIANTS:
    - visit_count only ever increases (one per check-in or POS transaction)
    - bad_actor_reason is set only while is_bad_actor is true

    Created implicitly on a customer's first visit.
    """
    __tablename__ = "customer_profiles"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "phone", name="uq_customer_profiles_shop_phone"),
        db.Index("ix_customer_profiles_shop_last_visit", "shop_id", "last_visit_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    phone = db.Column(db.String(32), nullable=False)
    name = db.Column(db.String(128), nullable=False, default="")

    visit_count = db.Column(db.Integer, nullable=False, default=0)
    last_visit_at = db.Column(db.DateTime, nullable=True)

    is_bad_actor = db.Column(db.Boolean, nullable=False, default=False, index=True)
    bad_actor_reason = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "phone": self.phone,
            "name": self.name,
            "visit_count": self.visit_count,
            "last_visit": to_utc_z(self.last_visit_at),
            "is_bad_actor": self.is_bad_actor,
            "bad_actor_reason": self.bad_actor_reason,
        }
