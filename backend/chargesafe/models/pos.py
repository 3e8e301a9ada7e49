from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

TX_WITHDRAWAL = "withdrawal"
TX_DEPOSIT = "deposit"
TX_TYPES = (TX_WITHDRAWAL, TX_DEPOSIT)
TX_METHODS = ("cash", "transfer")


class PosTransaction(db.Model):
    """
    Cash-out / cash-in performed for a customer on the shop's POS terminal.

    IMMUTABLE: Records are only ever inserted (or wiped by a shop reset).
    total = amount + fee.
    """
    __tablename__ = "pos_transactions"
    __table_args__ = (
        db.Index("ix_pos_transactions_shop_occurred", "shop_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)

    tx_type = db.Column(db.String(16), nullable=False)  # withdrawal, deposit
    amount = db.Column(db.Integer, nullable=False)
    fee = db.Column(db.Integer, nullable=False, default=0)
    total = db.Column(db.Integer, nullable=False)
    method = db.Column(db.String(16), nullable=False, default="cash")

    customer_name = db.Column(db.String(128), nullable=False)
    customer_phone = db.Column(db.String(32), nullable=True)

    occurred_at = db.Column(db.DateTime, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.tx_type,
            "amount": self.amount,
            "fee": self.fee,
            "total": self.total,
            "method": self.method,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "timestamp": to_utc_z(self.occurred_at),
        }
