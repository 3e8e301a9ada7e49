"""
Device Lifecycle Service

WHY: Every device left at the counter is a liability until it is handed
back. This service owns the charging -> ready -> collected state machine,
freezes the fee at collection, and keeps the slot ledger and customer
directory in step with each transition.

DESIGN PRINCIPLES:
- collected is terminal; any further transition is an InvalidStateError
- device, slot binding and customer profile change in one transaction
- a slot-bound device is only collected with a matching slot scan
- the row lock plus version_id turns a double collect from two terminals
  into one success and one InvalidStateError
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..billing import BILLING_FIXED, BILLING_HOURLY, BILLING_TYPES
from ..extensions import db, change_feed
from ..models import Device
from ..models.devices import (
    ACTIVE_STATUSES,
    DEVICE_TYPES,
    STATUS_CHARGING,
    STATUS_COLLECTED,
    STATUS_READY,
)
from ..time_utils import utcnow
from ..validation import (
    ValidationError,
    normalize_phone,
    optional_text,
    parse_amount,
    parse_choice,
    require_text,
)
from . import customer_service, slot_service
from .concurrency import lock_for_update, run_with_retry
from .document_service import DEVICE_ORDER, allocate_number, format_order_number
from .tenant_service import scoped_query

WALK_IN_CUSTOMER = "Walk-in Customer"
CHECK_IN_RISK_REASON = "Flagged at check-in"

VIEW_ACTIVE = "active"
VIEW_HISTORY = "history"
VIEW_ALL = "all"


class DeviceError(Exception):
    """Base class for device lifecycle errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class DeviceNotFoundError(DeviceError):
    pass


class InvalidStateError(DeviceError):
    """Raised for a transition the device's current status does not allow."""
    pass


class SlotMismatchError(DeviceError):
    """Raised when a checkout scan does not match the device. Nothing changes."""
    pass


@dataclass(frozen=True)
class BillingConfig:
    billing_type: str
    fixed_fee: int | None = None
    hourly_rate: int | None = None

    @classmethod
    def fixed(cls, fee: int) -> "BillingConfig":
        return cls(BILLING_FIXED, fixed_fee=fee)

    @classmethod
    def hourly(cls, rate: int) -> "BillingConfig":
        return cls(BILLING_HOURLY, hourly_rate=rate)

    @classmethod
    def from_dict(cls, data: dict) -> "BillingConfig":
        billing_type = parse_choice(data.get("billing_type"), "billing_type", BILLING_TYPES, default=BILLING_FIXED)
        if billing_type == BILLING_HOURLY:
            rate = parse_amount(data.get("hourly_rate"), "hourly_rate")
            if rate == 0:
                raise ValidationError("hourly_rate must be greater than zero", details={"field": "hourly_rate"})
            return cls.hourly(rate)
        return cls.fixed(parse_amount(data.get("fixed_fee"), "fixed_fee"))


def _get_for_update(shop_id: int, order_number: str) -> Device:
    device = lock_for_update(
        db.session.query(Device).filter_by(shop_id=shop_id, order_number=order_number)
    ).first()
    if not device:
        raise DeviceNotFoundError("Device not found", details={"order_number": order_number})
    return device


def _require_not_collected(device: Device) -> None:
    if device.status == STATUS_COLLECTED:
        raise InvalidStateError(
            f"Device {device.order_number} has already been collected",
            details={"order_number": device.order_number, "status": device.status},
        )


def get_device(shop_id: int, order_number: str) -> Device:
    device = scoped_query(Device, shop_id).filter_by(order_number=order_number).first()
    if not device:
        raise DeviceNotFoundError("Device not found", details={"order_number": order_number})
    return device


def check_in(
    shop_id: int,
    *,
    description: str,
    billing: BillingConfig,
    device_type: str = "Phone",
    customer_name: str | None = None,
    customer_phone: str | None = None,
    slot_id: str | None = None,
    tag_number: str | None = None,
    flag_as_risk: bool | None = None,
    now: datetime | None = None,
) -> Device:
    """
    Register a device left for charging.

    Allocates the next CS-#### order number, starts it charging, binds the
    slot (if any) and counts a customer visit (if a phone is given), all in
    one transaction.

    Raises:
        ValidationError: missing description or bad billing/device input
        SlotOccupiedError: slot_id holds another active device
        SlotOwnershipError: slot_id belongs to another shop
    """
    description = require_text({"description": description}, "description")
    device_type = parse_choice(device_type, "type", DEVICE_TYPES, default="Phone")
    if billing.billing_type not in BILLING_TYPES:
        raise ValidationError("billing_type must be fixed or hourly", details={"field": "billing_type"})
    if billing.billing_type == BILLING_FIXED and billing.fixed_fee is None:
        raise ValidationError("fixed_fee is required for fixed billing", details={"field": "fixed_fee"})
    if billing.billing_type == BILLING_HOURLY and not billing.hourly_rate:
        raise ValidationError("hourly_rate is required for hourly billing", details={"field": "hourly_rate"})

    phone = normalize_phone(customer_phone)
    name = optional_text({"customer_name": customer_name}, "customer_name", max_length=128)
    tag = optional_text({"tag_number": tag_number}, "tag_number", max_length=64)
    slot = slot_service.normalize_slot_id(slot_id) if slot_id is not None and str(slot_id).strip() else None
    started_at = now or utcnow()

    def _op():
        number = allocate_number(shop_id=shop_id, document_type=DEVICE_ORDER)
        device = Device(
            shop_id=shop_id,
            order_number=format_order_number(number),
            slot_id=slot,
            tag_number=tag,
            device_type=device_type,
            description=description,
            customer_name=name or WALK_IN_CUSTOMER,
            customer_phone=phone,
            billing_type=billing.billing_type,
            fixed_fee=billing.fixed_fee if billing.billing_type == BILLING_FIXED else None,
            hourly_rate=billing.hourly_rate if billing.billing_type == BILLING_HOURLY else None,
            status=STATUS_CHARGING,
            start_time=started_at,
        )
        db.session.add(device)
        db.session.flush()

        binding = slot_service.bind(slot, device.id, shop_id) if slot else None
        profile = None
        if phone:
            profile = customer_service.apply_visit(
                shop_id, phone, name,
                now=started_at,
                flag_as_risk=flag_as_risk,
                flag_reason=CHECK_IN_RISK_REASON,
            )

        db.session.commit()
        return device, binding, profile

    device, binding, profile = run_with_retry(_op, retry_on=(IntegrityError,))

    change_feed.publish(shop_id, "devices", "checked_in", device.to_dict(started_at))
    if binding is not None:
        change_feed.publish(shop_id, "slots", "bound", binding.to_dict())
    if profile is not None:
        change_feed.publish(shop_id, "customers", "upserted", profile.to_dict())
    return device


def mark_ready(shop_id: int, order_number: str, *, now: datetime | None = None) -> Device:
    """charging -> ready. The fee keeps accruing; nothing is finalized."""
    def _op():
        device = _get_for_update(shop_id, order_number)
        _require_not_collected(device)
        if device.status != STATUS_CHARGING:
            raise InvalidStateError(
                f"Device {order_number} is already {device.status}",
                details={"order_number": order_number, "status": device.status},
            )
        device.status = STATUS_READY
        device.ready_at = now or utcnow()
        db.session.commit()
        return device

    device = run_with_retry(_op)
    change_feed.publish(shop_id, "devices", "ready", device.to_dict(now))
    return device


def verify_checkout_scan(device: Device, proof_token: str | None) -> None:
    """
    Gate a checkout on the operator's scan.

    A slot-bound device needs the scanned payload to equal its slot id.
    A device without a slot may be verified against its order number
    (case-insensitive); omitting the token is allowed for those.
    """
    token = proof_token.strip() if proof_token is not None else None

    if device.slot_id:
        if not token:
            raise SlotMismatchError(
                f"Scan the slot QR code of {device.order_number} to check out",
                details={"order_number": device.order_number},
            )
        if token != device.slot_id:
            raise SlotMismatchError(
                "Scanned slot does not match this device",
                details={"order_number": device.order_number, "scanned": token},
            )
        return

    if token and token.upper() != device.order_number.upper():
        raise SlotMismatchError(
            "Device does not match Order Number",
            details={"order_number": device.order_number, "scanned": token},
        )


def collect(
    shop_id: int,
    order_number: str,
    proof_token: str | None = None,
    *,
    now: datetime | None = None,
) -> Device:
    """
    charging|ready -> collected.

    Verifies the checkout scan, freezes the fee at this instant, stamps
    end_time and releases the slot, in one transaction.

    Raises:
        DeviceNotFoundError, InvalidStateError (already collected),
        SlotMismatchError (scan missing or wrong; nothing is written)
    """
    collected_at = now or utcnow()

    def _op():
        device = _get_for_update(shop_id, order_number)
        _require_not_collected(device)
        verify_checkout_scan(device, proof_token)

        device.final_fee = device.fee_at(collected_at)
        device.end_time = collected_at
        device.status = STATUS_COLLECTED

        binding = None
        if device.slot_id:
            binding = slot_service.release(device.slot_id, shop_id, device_id=device.id)
            device.slot_id = None

        db.session.commit()
        return device, binding

    device, binding = run_with_retry(_op)

    change_feed.publish(shop_id, "devices", "collected", device.to_dict())
    if binding is not None:
        change_feed.publish(shop_id, "slots", "released", binding.to_dict())
    return device


def current_fee(shop_id: int, order_number: str, *, now: datetime | None = None) -> int:
    """Fee owed right now; frozen once the device is collected."""
    return get_device(shop_id, order_number).fee_at(now)


def list_devices(shop_id: int, view: str = VIEW_ACTIVE, search: str | None = None) -> list[Device]:
    """Newest first; search matches order number, customer, description, slot or tag."""
    query = scoped_query(Device, shop_id)
    if view == VIEW_ACTIVE:
        query = query.filter(Device.status.in_(ACTIVE_STATUSES))
    elif view == VIEW_HISTORY:
        query = query.filter(Device.status == STATUS_COLLECTED)
    elif view != VIEW_ALL:
        raise ValidationError("view must be active, history or all", details={"field": "view"})

    if search and search.strip():
        term = f"%{search.strip().lower()}%"
        query = query.filter(or_(
            db.func.lower(Device.order_number).like(term),
            db.func.lower(Device.customer_name).like(term),
            db.func.lower(Device.description).like(term),
            db.func.lower(Device.slot_id).like(term),
            db.func.lower(Device.tag_number).like(term),
        ))

    return query.order_by(Device.start_time.desc(), Device.id.desc()).all()
