# Overview: Service-layer operations for document numbering.

from __future__ import annotations

from sqlalchemy import update

from ..extensions import db
from ..models import DocumentSequence

DEVICE_ORDER = "DEVICE_ORDER"
DEVICE_ORDER_PREFIX = "CS"


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def allocate_number(*, shop_id: int, document_type: str) -> int:
    """
    Reserve the next number for a shop/type inside the caller's transaction.

    Callers own the commit and the retry loop; the increment is a single
    UPDATE so concurrent allocators serialize on the sequence row.
    """
    if not shop_id:
        raise DocumentSequenceError("shop_id is required")
    if not document_type:
        raise DocumentSequenceError("document_type is required")

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.shop_id == shop_id,
            DocumentSequence.document_type == document_type,
        )
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        db.session.flush()
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(shop_id=shop_id, document_type=document_type)
            .scalar()
        )
        return current - 1

    # First number for this shop/type. A concurrent first allocation
    # fails on the unique constraint and the caller's retry picks up the row.
    db.session.add(DocumentSequence(shop_id=shop_id, document_type=document_type, next_number=2))
    db.session.flush()
    return 1


def format_order_number(number: int, *, prefix: str = DEVICE_ORDER_PREFIX, pad: int = 4) -> str:
    return f"{prefix}-{number:0{pad}d}"
