# Overview: Service-layer operations for maintenance; bulk erase and housekeeping.

from __future__ import annotations

import logging

from ..extensions import db, change_feed
from ..models import CustomerProfile, Device, PosTransaction, SlotBinding
from ..models.slots import SLOT_AVAILABLE
from .concurrency import run_with_retry

logger = logging.getLogger(__name__)

ERASE_CONFIRMATION = "DELETE"


def erase_shop_data(shop_id: int) -> dict:
    """
    Factory reset for one shop.

    Deletes device history, customers and POS transactions and frees every
    slot the shop owns. Slot rows, the shop account and order number
    sequences survive, so order numbers are never reused.
    """
    def _op():
        db.session.query(SlotBinding).filter_by(owner_shop_id=shop_id).update(
            {"device_id": None, "status": SLOT_AVAILABLE, "version_id": SlotBinding.version_id + 1},
            synchronize_session=False,
        )
        counts = {
            "devices": db.session.query(Device).filter_by(shop_id=shop_id).delete(synchronize_session=False),
            "customers": db.session.query(CustomerProfile).filter_by(shop_id=shop_id).delete(synchronize_session=False),
            "pos_transactions": db.session.query(PosTransaction).filter_by(shop_id=shop_id).delete(synchronize_session=False),
        }
        db.session.commit()
        return counts

    counts = run_with_retry(_op)
    db.session.expire_all()
    logger.info("Erased data for shop %s: %s", shop_id, counts)
    change_feed.publish(shop_id, "shop", "erased", counts)
    return counts
