"""
POS Agent Service: cash-out / cash-in transactions

WHY: Besides charging, shops act as mobile-money agents. A withdrawal hands
the customer cash and receives an electronic transfer onto the terminal
float; a deposit does the reverse. The daily balancer tells the operator
how much physical cash and float they should be holding.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.exc import IntegrityError

from ..extensions import db, change_feed
from ..models import PosTransaction
from ..models.pos import TX_DEPOSIT, TX_METHODS, TX_TYPES, TX_WITHDRAWAL
from ..time_utils import start_of_day, utcnow
from ..validation import normalize_phone, optional_text, parse_amount, parse_choice
from . import customer_service
from .concurrency import run_with_retry
from .tenant_service import scoped_query

WALK_IN = "Walk-in"
POS_RISK_REASON = "Flagged at POS"

# (upper amount limit, suggested fee) for withdrawals
SUGGESTED_RATES = (
    (5_000, 100),
    (10_000, 200),
    (20_000, 300),
    (1_000_000, 500),
)


@dataclass
class BalanceSummary:
    cash_in_hand: int
    terminal_float: int
    daily_profit: int
    transaction_count: int

    def to_dict(self) -> dict:
        return {
            "cash_in_hand": self.cash_in_hand,
            "terminal_float": self.terminal_float,
            "daily_profit": self.daily_profit,
            "transaction_count": self.transaction_count,
        }


def suggested_fee(tx_type: str, amount: int) -> int | None:
    """Tiered fee for withdrawals; deposits and very large amounts get no suggestion."""
    if tx_type != TX_WITHDRAWAL:
        return None
    for limit, charge in SUGGESTED_RATES:
        if amount <= limit:
            return charge
    return None


def record_transaction(
    shop_id: int,
    *,
    tx_type: str,
    amount,
    fee=None,
    method: str | None = None,
    customer_name: str | None = None,
    customer_phone: str | None = None,
    flag_as_risk: bool | None = None,
    now: datetime | None = None,
) -> PosTransaction:
    """
    Save a POS transaction and count a visit for the customer's phone.

    Both rows commit together; flag_as_risk follows the same rules as
    check-in (None keeps, True flags, False clears).
    """
    tx_type = parse_choice(tx_type, "type", TX_TYPES)
    amount = parse_amount(amount, "amount")
    fee = parse_amount(fee, "fee", required=False) or 0
    method = parse_choice(method, "method", TX_METHODS, default="cash")
    name = optional_text({"customer_name": customer_name}, "customer_name", max_length=128)
    phone = normalize_phone(customer_phone)
    occurred_at = now or utcnow()

    def _op():
        tx = PosTransaction(
            shop_id=shop_id,
            tx_type=tx_type,
            amount=amount,
            fee=fee,
            total=amount + fee,
            method=method,
            customer_name=name or WALK_IN,
            customer_phone=phone,
            occurred_at=occurred_at,
        )
        db.session.add(tx)
        profile = None
        if phone:
            profile = customer_service.apply_visit(
                shop_id, phone, name,
                now=occurred_at,
                flag_as_risk=flag_as_risk,
                flag_reason=POS_RISK_REASON,
            )
        db.session.commit()
        return tx, profile

    tx, profile = run_with_retry(_op, retry_on=(IntegrityError,))

    change_feed.publish(shop_id, "pos_transactions", "recorded", tx.to_dict())
    if profile is not None:
        change_feed.publish(shop_id, "customers", "upserted", profile.to_dict())
    return tx


def transactions_for_day(shop_id: int, day: datetime | None = None) -> list[PosTransaction]:
    """Transactions of one UTC day, newest first."""
    start = start_of_day(day or utcnow())
    return (
        scoped_query(PosTransaction, shop_id)
        .filter(
            PosTransaction.occurred_at >= start,
            PosTransaction.occurred_at < start + timedelta(days=1),
        )
        .order_by(PosTransaction.occurred_at.desc(), PosTransaction.id.desc())
        .all()
    )


def balance(transactions: list[PosTransaction], opening_cash: int = 0, opening_float: int = 0) -> BalanceSummary:
    """
    Expected cash and float after a day's transactions.

    withdrawal: cash -amount, float +(amount + fee)
    deposit:    cash +(amount + fee), float -amount
    """
    cash = opening_cash
    terminal_float = opening_float
    profit = 0

    for tx in transactions:
        profit += tx.fee
        if tx.tx_type == TX_WITHDRAWAL:
            cash -= tx.amount
            terminal_float += tx.amount + tx.fee
        elif tx.tx_type == TX_DEPOSIT:
            cash += tx.amount + tx.fee
            terminal_float -= tx.amount

    return BalanceSummary(
        cash_in_hand=cash,
        terminal_float=terminal_float,
        daily_profit=profit,
        transaction_count=len(transactions),
    )
