# Overview: Service-layer operations for reporting; monthly revenue summaries.

from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..models import Device, PosTransaction
from ..time_utils import month_bounds, utcnow
from ..validation import ValidationError


def monthly_summary(shop_id: int, month: str, *, now: datetime | None = None) -> dict:
    """
    Revenue for a "YYYY-MM" month.

    Charging revenue counts devices checked in during the month at their
    current fee (frozen for collected devices, accrued so far otherwise).
    POS revenue is the sum of transaction fees in the month.
    """
    try:
        start, end = month_bounds(month)
    except ValueError:
        raise ValidationError("month must be formatted YYYY-MM", details={"field": "month"})

    now = now or utcnow()

    devices = (
        db.session.query(Device)
        .filter(Device.shop_id == shop_id, Device.start_time >= start, Device.start_time < end)
        .all()
    )
    charge_revenue = sum(device.fee_at(now) for device in devices)

    pos_count, pos_revenue = (
        db.session.query(db.func.count(PosTransaction.id), db.func.coalesce(db.func.sum(PosTransaction.fee), 0))
        .filter(
            PosTransaction.shop_id == shop_id,
            PosTransaction.occurred_at >= start,
            PosTransaction.occurred_at < end,
        )
        .one()
    )

    return {
        "month": start.strftime("%Y-%m"),
        "count": len(devices) + pos_count,
        "device_count": len(devices),
        "pos_count": pos_count,
        "charge_revenue": charge_revenue,
        "pos_revenue": int(pos_revenue),
        "revenue": charge_revenue + int(pos_revenue),
    }
