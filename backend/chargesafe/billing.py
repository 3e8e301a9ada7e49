"""
Charging fee accrual.

Fixed-fee devices cost the agreed amount for their whole stay. Hourly
devices accrue from check-in: elapsed time is floored at half an hour and
the result is rounded up to the next whole currency unit. Once a device is
collected its fee is frozen and never recomputed.

Arithmetic is exact (Fraction over whole microseconds) so that boundary
values like exactly one hour never round up because of float error.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta
from fractions import Fraction

BILLING_FIXED = "fixed"
BILLING_HOURLY = "hourly"
BILLING_TYPES = (BILLING_FIXED, BILLING_HOURLY)

MINIMUM_BILLABLE = timedelta(minutes=30)

_MICROS_PER_HOUR = 3_600_000_000


def billable_duration(start_time: datetime, now: datetime) -> timedelta:
    """Elapsed time since check-in, never less than the minimum charge."""
    return max(now - start_time, MINIMUM_BILLABLE)


def hourly_fee(hourly_rate: int, start_time: datetime, now: datetime) -> int:
    micros = billable_duration(start_time, now) // timedelta(microseconds=1)
    return math.ceil(Fraction(micros * hourly_rate, _MICROS_PER_HOUR))


def accrued_fee(
    billing_type: str,
    fixed_fee: int | None,
    hourly_rate: int | None,
    start_time: datetime,
    now: datetime,
    is_finalized: bool = False,
    frozen_fee: int | None = None,
) -> int:
    """
    Fee owed for a device at `now`.

    A finalized (collected) device always returns `frozen_fee`; `now` is
    ignored so repeated reads are identical.
    """
    if is_finalized:
        if frozen_fee is None:
            raise ValueError("finalized device has no frozen fee")
        return frozen_fee

    if billing_type == BILLING_FIXED:
        return fixed_fee or 0

    if billing_type == BILLING_HOURLY:
        if hourly_rate is None:
            raise ValueError("hourly billing requires hourly_rate")
        return hourly_fee(hourly_rate, start_time, now)

    raise ValueError(f"unknown billing type {billing_type!r}")
