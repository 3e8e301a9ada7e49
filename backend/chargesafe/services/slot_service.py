"""
Slot Binding Ledger

WHY: A printed QR sticker on a charging bay is the physical proof of which
device sits where. The ledger maps each slot id to at most one active
device, so a second check-in on an occupied bay is refused and pickup can
be gated on re-scanning the right sticker.

DESIGN:
- slot ids are global keys; the first shop to use an id owns it
- bind is a conditional write (row lock + version_id check-and-set)
- a binding whose device is no longer active is stale and may be overwritten
- release is idempotent
"""

from __future__ import annotations

import logging
import re

from sqlalchemy.exc import IntegrityError

from ..extensions import db, change_feed
from ..models import Device, SlotBinding
from ..models.devices import ACTIVE_STATUSES
from ..models.slots import SLOT_AVAILABLE, SLOT_OCCUPIED
from ..validation import ValidationError, ConflictError
from .concurrency import lock_for_update, run_with_retry

logger = logging.getLogger(__name__)

MAX_SLOT_ID_LENGTH = 64
MAX_LABEL_BATCH = 200


class SlotOccupiedError(ConflictError):
    """Raised when a slot already holds another active device."""
    pass


class SlotOwnershipError(ConflictError):
    """Raised when a slot id is already claimed by a different shop."""
    pass


class SlotNotFoundError(Exception):
    """Raised when a slot id has no row owned by the shop."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def normalize_slot_id(value) -> str:
    """Scanned payloads arrive with stray whitespace; the id itself is exact."""
    slot_id = str(value or "").strip()
    if not slot_id:
        raise ValidationError("slot_id is required", details={"field": "slot_id"})
    if len(slot_id) > MAX_SLOT_ID_LENGTH:
        raise ValidationError(
            f"slot_id must be at most {MAX_SLOT_ID_LENGTH} characters",
            details={"field": "slot_id"},
        )
    return slot_id


def _claim_row(slot_id: str, shop_id: int) -> SlotBinding:
    """Locked slot row owned by shop_id, created on first use."""
    slot = lock_for_update(db.session.query(SlotBinding).filter_by(slot_id=slot_id)).first()
    if slot is None:
        slot = SlotBinding(slot_id=slot_id, owner_shop_id=shop_id, status=SLOT_AVAILABLE, device_id=None)
        db.session.add(slot)
        db.session.flush()
        return slot

    if slot.owner_shop_id != shop_id:
        raise SlotOwnershipError(
            f"Slot {slot_id} is registered to another shop",
            details={"slot_id": slot_id},
        )
    return slot


def _occupant_is_active(slot: SlotBinding) -> bool:
    if slot.device_id is None:
        return False
    occupant = db.session.get(Device, slot.device_id)
    return occupant is not None and occupant.status in ACTIVE_STATUSES


def bind(slot_id: str, device_id: int, owner_shop_id: int) -> SlotBinding:
    """
    Mark slot_id occupied by device_id inside the caller's transaction.

    Raises SlotOccupiedError if another active device holds the slot.
    A concurrent writer on the same row makes the flush fail with
    StaleDataError, which the caller's run_with_retry re-evaluates.
    """
    slot = _claim_row(slot_id, owner_shop_id)

    if slot.device_id is not None and slot.device_id != device_id:
        if _occupant_is_active(slot):
            raise SlotOccupiedError(
                f"Slot {slot_id} is already occupied",
                details={"slot_id": slot_id, "device_id": slot.device_id},
            )
        logger.warning(
            "Overwriting stale binding on slot %s (device %s no longer active)",
            slot_id, slot.device_id,
        )

    slot.device_id = device_id
    slot.status = SLOT_OCCUPIED
    db.session.flush()
    return slot


def release(slot_id: str, owner_shop_id: int, *, device_id: int | None = None) -> SlotBinding | None:
    """
    Mark slot_id available inside the caller's transaction.

    With device_id, only that device's binding is released; a slot already
    rebound to someone else is left alone. Releasing a free slot is a no-op.
    """
    slot = lock_for_update(db.session.query(SlotBinding).filter_by(slot_id=slot_id)).first()
    if slot is None:
        return None
    if slot.owner_shop_id != owner_shop_id:
        raise SlotOwnershipError(
            f"Slot {slot_id} is registered to another shop",
            details={"slot_id": slot_id},
        )
    if device_id is not None and slot.device_id not in (None, device_id):
        logger.warning(
            "Slot %s is bound to device %s, not %s; leaving it occupied",
            slot_id, slot.device_id, device_id,
        )
        return slot

    if slot.status != SLOT_AVAILABLE or slot.device_id is not None:
        slot.device_id = None
        slot.status = SLOT_AVAILABLE
        db.session.flush()
    return slot


def lookup_active_device_for_slot(slot_id: str, shop_id: int) -> Device | None:
    """The charging or ready device currently sitting in slot_id, if any."""
    return (
        db.session.query(Device)
        .filter(
            Device.shop_id == shop_id,
            Device.slot_id == slot_id,
            Device.status.in_(ACTIVE_STATUSES),
        )
        .order_by(Device.start_time.desc())
        .first()
    )


def resolve_scan(shop_id: int, payload: str) -> dict:
    """
    Branch a slot scan: an occupied slot opens checkout, a free one opens
    a new check-in pre-filled with the slot id.
    """
    slot_id = normalize_slot_id(payload)
    slot = db.session.query(SlotBinding).filter_by(slot_id=slot_id).first()
    if slot is not None and slot.owner_shop_id != shop_id:
        raise SlotOwnershipError(
            f"Slot {slot_id} is registered to another shop",
            details={"slot_id": slot_id},
        )

    device = lookup_active_device_for_slot(slot_id, shop_id)
    if device is not None:
        return {"action": "checkout", "slot_id": slot_id, "device": device.to_dict()}
    return {"action": "check_in", "slot_id": slot_id, "device": None}


def release_stale(shop_id: int, slot_id: str) -> SlotBinding:
    """
    Manual reconciliation: free a slot whose bound device is no longer active.

    Raises SlotOccupiedError when the device is still charging or ready;
    those slots are freed only by collecting the device.
    """
    slot_id = normalize_slot_id(slot_id)

    def _op():
        slot = lock_for_update(db.session.query(SlotBinding).filter_by(slot_id=slot_id)).first()
        if slot is None or slot.owner_shop_id != shop_id:
            raise SlotNotFoundError(f"Slot {slot_id} not found", details={"slot_id": slot_id})
        if _occupant_is_active(slot):
            raise SlotOccupiedError(
                f"Slot {slot_id} holds an active device; collect it instead",
                details={"slot_id": slot_id, "device_id": slot.device_id},
            )
        release(slot_id, shop_id)
        db.session.commit()
        return slot

    slot = run_with_retry(_op)
    change_feed.publish(shop_id, "slots", "released", slot.to_dict())
    return slot


# =============================================================================
# STICKER BATCHES
# =============================================================================

def next_slot_label(slot_id: str) -> str:
    """
    Increment the trailing number of a label, keeping its zero padding.

    SLOT-01 -> SLOT-02, A9 -> A10, BAY -> BAY-1
    """
    match = re.search(r"(\d+)$", slot_id)
    if not match:
        return f"{slot_id}-1"
    digits = match.group(1)
    number = str(int(digits) + 1).zfill(len(digits))
    return slot_id[:match.start()] + number


def slot_label_batch(start: str, count: int) -> list[str]:
    """count consecutive labels beginning with start."""
    start = normalize_slot_id(start)
    if count < 1 or count > MAX_LABEL_BATCH:
        raise ValidationError(
            f"count must be between 1 and {MAX_LABEL_BATCH}",
            details={"field": "count"},
        )
    labels = [start]
    while len(labels) < count:
        labels.append(next_slot_label(labels[-1]))
    return labels


def register_slots(shop_id: int, labels: list[str]) -> list[SlotBinding]:
    """
    Claim slot ids for a shop ahead of printing their stickers.

    Existing rows owned by the shop are returned unchanged. Nothing is
    claimed if any label belongs to another shop.
    """
    normalized = list(dict.fromkeys(normalize_slot_id(label) for label in labels))
    if not normalized:
        raise ValidationError("At least one slot label is required")

    def _op():
        slots = [_claim_row(slot_id, shop_id) for slot_id in normalized]
        db.session.commit()
        return slots

    slots = run_with_retry(_op, retry_on=(IntegrityError,))
    for slot in slots:
        change_feed.publish(shop_id, "slots", "registered", slot.to_dict())
    return slots


def list_slots(shop_id: int, status: str | None = None) -> list[SlotBinding]:
    query = db.session.query(SlotBinding).filter_by(owner_shop_id=shop_id)
    if status:
        query = query.filter_by(status=status)
    return query.order_by(SlotBinding.slot_id).all()
