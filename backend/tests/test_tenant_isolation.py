# Overview: Pytest coverage for tenant isolation behavior.

"""
Multi-Tenant Isolation Tests

SECURITY TESTS: Prove that one shop can never see or touch another shop's
devices, customers, POS transactions or slots.

Records of another shop are reported as not found so their existence is
never revealed.
"""

import pytest
from flask import g

from chargesafe.models import Device
from chargesafe.services import customer_service, device_service, pos_service
from chargesafe.services.device_service import BillingConfig, DeviceNotFoundError
from chargesafe.services.session_service import create_session, validate_session
from chargesafe.services.tenant_service import TenantAccessError, get_current_shop_id, scoped_query
from chargesafe.models.pos import TX_WITHDRAWAL
from conftest import T0, auth_headers


def _device_for(shop):
    return device_service.check_in(
        shop.id, description="Tecno", billing=BillingConfig.fixed(500),
        customer_phone="08012345678", now=T0,
    )


class TestTenantServiceHelpers:
    """Test tenant_service helper functions."""

    def test_current_shop_requires_context(self, app):
        # Fresh app context so g carries no shop from earlier requests
        with app.app_context():
            with pytest.raises(TenantAccessError):
                get_current_shop_id()

    def test_scoped_query_uses_request_shop(self, app, db_session, shop_a, shop_b):
        _device_for(shop_a)
        _device_for(shop_b)
        shop_b_id = shop_b.id

        with app.app_context():
            g.shop_id = shop_b_id
            shop_ids = [d.shop_id for d in scoped_query(Device).all()]

        assert shop_ids == [shop_b_id]

    def test_missing_context_answers_not_found(self, app):
        with app.test_request_context("/api/devices"):
            response = app.make_response(
                app.handle_user_exception(TenantAccessError("Tenant context not established"))
            )
        assert response.status_code == 404
        assert response.json == {"error": "Not found"}


class TestSessionTenantContext:
    """Sessions carry the shop as tenant."""

    def test_validate_session_returns_shop(self, db_session, shop_a):
        session, token = create_session(shop_a.id)

        context = validate_session(token)

        assert context is not None
        assert context.shop_id == shop_a.id

    def test_deactivated_shop_session_rejected(self, db_session, shop_a):
        _, token = create_session(shop_a.id)
        shop_a.is_active = False
        db_session.commit()

        assert validate_session(token) is None

    def test_inactive_shop_cannot_log_in(self, db_session, shop_a):
        shop_a.is_active = False
        db_session.commit()

        with pytest.raises(ValueError):
            create_session(shop_a.id)


class TestServiceIsolation:
    """Service calls are always scoped by shop_id."""

    def test_other_shop_device_not_found(self, db_session, shop_a, shop_b):
        device = _device_for(shop_a)

        with pytest.raises(DeviceNotFoundError):
            device_service.get_device(shop_b.id, device.order_number)
        with pytest.raises(DeviceNotFoundError):
            device_service.collect(shop_b.id, device.order_number, now=T0)

    def test_listings_are_scoped(self, db_session, shop_a, shop_b):
        _device_for(shop_a)
        pos_service.record_transaction(shop_a.id, tx_type=TX_WITHDRAWAL, amount=1_000, now=T0)

        assert device_service.list_devices(shop_b.id, "all") == []
        assert customer_service.list_customers(shop_b.id) == []
        assert pos_service.transactions_for_day(shop_b.id, T0) == []
        assert customer_service.lookup(shop_b.id, "08012345678") is None


class TestApiIsolation:
    """HTTP endpoints answer 404 for another shop's records."""

    def test_cross_shop_device_read_is_404(self, client, db_session, shop_a, shop_b):
        device = _device_for(shop_a)
        _, token_b = create_session(shop_b.id)

        response = client.get(f"/api/devices/{device.order_number}", headers=auth_headers(token_b))
        assert response.status_code == 404

        response = client.post(
            f"/api/devices/{device.order_number}/collect",
            json={},
            headers=auth_headers(token_b),
        )
        assert response.status_code == 404
