"""
Tenant Service: shop context helpers

SECURITY INVARIANTS:
1. Every authenticated request has g.shop_id set
2. Records of another shop are reported as not found, never as forbidden
"""

from flask import g

from ..extensions import db


class TenantAccessError(Exception):
    """Raised when a shop-scoped read has no shop id and no request shop."""
    pass


def get_current_shop_id() -> int:
    """
    Get current tenant's shop_id from Flask g context.

    Raises TenantAccessError if it was never established.
    """
    shop_id = getattr(g, 'shop_id', None)
    if shop_id is None:
        raise TenantAccessError("Tenant context not established")
    return shop_id


def scoped_query(model, shop_id: int | None = None):
    """
    Query for a shop-owned model filtered to one shop.

    Falls back to the shop of the current request when shop_id is omitted.
    """
    if shop_id is None:
        shop_id = get_current_shop_id()
    return db.session.query(model).filter(model.shop_id == shop_id)
