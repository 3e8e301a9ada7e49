"""
Customer Trust Directory

WHY: Front-desk staff need to recognise returning customers and spot the
ones who caused trouble before (unpaid fees, disputes). Profiles are keyed
by phone number within a shop and maintained as a side effect of every
check-in and POS transaction.

DESIGN PRINCIPLES:
- Upsert on visit; no explicit "create customer" step
- visit_count is incremented in SQL, never recomputed or reset
- The risk flag is only changed by an explicit operator decision
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db, change_feed
from ..models import CustomerProfile
from ..time_utils import utcnow
from ..validation import ValidationError, normalize_phone, phone_digit_count
from .concurrency import run_with_retry
from .tenant_service import scoped_query

# Lookups on shorter input are partial typing, not a phone number
LOOKUP_MIN_DIGITS = 10

TRUST_UNKNOWN = "unknown"
TRUST_GOOD = "good"
TRUST_BAD = "bad"

DEFAULT_BAD_ACTOR_REASON = "Previous Issue"


class CustomerNotFoundError(Exception):
    """Raised when an operator acts on a phone number with no profile."""
    pass


@dataclass
class CustomerPrefill:
    """What a check-in or POS form shows once a phone number is entered."""
    profile: CustomerProfile | None
    trust_status: str
    reason: str | None
    flag_as_risk: bool

    def to_dict(self) -> dict:
        return {
            "customer": self.profile.to_dict() if self.profile else None,
            "trust": {"status": self.trust_status, "reason": self.reason},
            "flag_as_risk": self.flag_as_risk,
        }


def _get_profile(shop_id: int, phone: str) -> CustomerProfile | None:
    return db.session.query(CustomerProfile).filter_by(shop_id=shop_id, phone=phone).first()


def apply_visit(
    shop_id: int,
    phone: str,
    name: str | None,
    *,
    now: datetime,
    flag_as_risk: bool | None = None,
    flag_reason: str | None = None,
) -> CustomerProfile:
    """
    Upsert a profile for one visit inside the caller's transaction.

    flag_as_risk: None keeps the stored flag, True flags with flag_reason,
    False clears an existing flag. The caller commits.
    """
    profile = _get_profile(shop_id, phone)
    if profile is None:
        profile = CustomerProfile(
            shop_id=shop_id,
            phone=phone,
            name=name or "",
            visit_count=1,
            last_visit_at=now,
            is_bad_actor=False,
        )
        db.session.add(profile)
    else:
        if name:
            profile.name = name
        profile.last_visit_at = now
        profile.visit_count = CustomerProfile.visit_count + 1

    if flag_as_risk is True:
        profile.is_bad_actor = True
        profile.bad_actor_reason = flag_reason or DEFAULT_BAD_ACTOR_REASON
    elif flag_as_risk is False and profile.is_bad_actor:
        profile.is_bad_actor = False
        profile.bad_actor_reason = None

    db.session.flush()
    return profile


def record_visit(shop_id: int, phone: str, name: str | None = None, *, now: datetime | None = None) -> CustomerProfile:
    """Count one visit for phone, creating the profile on first contact."""
    normalized = normalize_phone(phone)
    if not normalized:
        raise ValidationError("phone is required", details={"field": "phone"})

    def _op():
        profile = apply_visit(shop_id, normalized, name, now=now or utcnow())
        db.session.commit()
        return profile

    # A concurrent first visit loses the unique-constraint race and retries as an update
    profile = run_with_retry(_op, retry_on=(IntegrityError,))
    change_feed.publish(shop_id, "customers", "upserted", profile.to_dict())
    return profile


def set_risk_flag(shop_id: int, phone: str, flagged: bool, reason: str | None = None) -> CustomerProfile:
    """Flag or clear a customer; the reason is dropped when clearing."""
    normalized = normalize_phone(phone)
    if not normalized:
        raise ValidationError("phone is required", details={"field": "phone"})

    def _op():
        profile = _get_profile(shop_id, normalized)
        if not profile:
            raise CustomerNotFoundError("Customer not found")
        profile.is_bad_actor = flagged
        profile.bad_actor_reason = (reason or "Flagged manually via directory") if flagged else None
        db.session.commit()
        return profile

    profile = run_with_retry(_op)
    change_feed.publish(shop_id, "customers", "flagged" if flagged else "unflagged", profile.to_dict())
    return profile


def lookup(shop_id: int, phone: str | None) -> CustomerProfile | None:
    """Profile for phone, or None for unknown numbers and partial input."""
    normalized = normalize_phone(phone)
    if phone_digit_count(normalized) < LOOKUP_MIN_DIGITS:
        return None
    return _get_profile(shop_id, normalized)


def prefill(shop_id: int, phone: str | None) -> CustomerPrefill:
    """
    Auto-fill data for a form: known bad actors start with the risk
    toggle on, so they stay flagged unless the operator clears it.
    """
    profile = lookup(shop_id, phone)
    if profile is None:
        return CustomerPrefill(profile=None, trust_status=TRUST_UNKNOWN, reason=None, flag_as_risk=False)
    if profile.is_bad_actor:
        return CustomerPrefill(
            profile=profile,
            trust_status=TRUST_BAD,
            reason=profile.bad_actor_reason or DEFAULT_BAD_ACTOR_REASON,
            flag_as_risk=True,
        )
    return CustomerPrefill(profile=profile, trust_status=TRUST_GOOD, reason=None, flag_as_risk=False)


def list_customers(shop_id: int, search: str | None = None, flagged_only: bool = False) -> list[CustomerProfile]:
    """Directory ordered by most recent visit."""
    query = scoped_query(CustomerProfile, shop_id)
    if flagged_only:
        query = query.filter(CustomerProfile.is_bad_actor.is_(True))
    if search:
        term = f"%{search.strip().lower()}%"
        query = query.filter(or_(
            db.func.lower(CustomerProfile.name).like(term),
            CustomerProfile.phone.like(term),
        ))
    return query.order_by(CustomerProfile.last_visit_at.desc(), CustomerProfile.id.desc()).all()
