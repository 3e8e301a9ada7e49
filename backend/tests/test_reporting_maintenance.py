# Overview: Pytest coverage for monthly reports and shop data erase.

from datetime import timedelta

import pytest

from chargesafe.extensions import db
from chargesafe.models import CustomerProfile, Device, PosTransaction, SlotBinding
from chargesafe.models.slots import SLOT_AVAILABLE
from chargesafe.services import device_service, maintenance_service, pos_service, reporting_service
from chargesafe.services.device_service import BillingConfig
from chargesafe.models.pos import TX_WITHDRAWAL
from chargesafe.validation import ValidationError
from conftest import T0


class TestMonthlySummary:
    def test_revenue_for_month(self, db_session, shop_a):
        fixed = device_service.check_in(
            shop_a.id, description="Tecno", billing=BillingConfig.fixed(500), now=T0,
        )
        device_service.collect(shop_a.id, fixed.order_number, now=T0 + timedelta(hours=1))
        device_service.check_in(
            shop_a.id, description="Laptop", device_type="Laptop",
            billing=BillingConfig.hourly(100), now=T0,
        )
        device_service.check_in(
            shop_a.id, description="Old", billing=BillingConfig.fixed(900), now=T0 - timedelta(days=40),
        )
        pos_service.record_transaction(shop_a.id, tx_type=TX_WITHDRAWAL, amount=5_000, fee=200, now=T0)

        summary = reporting_service.monthly_summary(shop_a.id, "2026-03", now=T0 + timedelta(hours=1))

        assert summary == {
            "month": "2026-03",
            "count": 3,
            "device_count": 2,
            "pos_count": 1,
            "charge_revenue": 600,
            "pos_revenue": 200,
            "revenue": 800,
        }

    def test_other_shops_excluded(self, db_session, shop_a, shop_b):
        device_service.check_in(shop_b.id, description="Tecno", billing=BillingConfig.fixed(500), now=T0)
        summary = reporting_service.monthly_summary(shop_a.id, "2026-03", now=T0)
        assert summary["revenue"] == 0

    def test_bad_month_rejected(self, db_session, shop_a):
        with pytest.raises(ValidationError):
            reporting_service.monthly_summary(shop_a.id, "2026-13")


class TestEraseShopData:
    def test_erase_wipes_records_and_frees_slots(self, db_session, shop_a, shop_b, feed):
        device_service.check_in(
            shop_a.id, description="Tecno", billing=BillingConfig.fixed(500),
            slot_id="A1", customer_phone="08012345678", now=T0,
        )
        pos_service.record_transaction(shop_a.id, tx_type=TX_WITHDRAWAL, amount=5_000, now=T0)
        device_service.check_in(shop_b.id, description="Kept", billing=BillingConfig.fixed(100), now=T0)

        with feed.subscribe(shop_a.id, ["shop"]) as sub:
            counts = maintenance_service.erase_shop_data(shop_a.id)
            event = sub.get(timeout=1)

        assert counts == {"devices": 1, "customers": 1, "pos_transactions": 1}
        assert event["action"] == "erased"
        assert db_session.query(Device).filter_by(shop_id=shop_a.id).count() == 0
        assert db_session.query(CustomerProfile).filter_by(shop_id=shop_a.id).count() == 0
        assert db_session.query(PosTransaction).filter_by(shop_id=shop_a.id).count() == 0
        assert db_session.query(Device).filter_by(shop_id=shop_b.id).count() == 1

        slot = db.session.get(SlotBinding, "A1")
        assert slot.owner_shop_id == shop_a.id
        assert slot.status == SLOT_AVAILABLE
        assert slot.device_id is None

    def test_order_numbers_not_reused_after_erase(self, db_session, shop_a):
        device_service.check_in(shop_a.id, description="One", billing=BillingConfig.fixed(100), now=T0)
        maintenance_service.erase_shop_data(shop_a.id)

        device = device_service.check_in(shop_a.id, description="Two", billing=BillingConfig.fixed(100), now=T0)
        assert device.order_number == "CS-0002"

    def test_freed_slot_can_be_bound_again(self, db_session, shop_a):
        device_service.check_in(
            shop_a.id, description="One", billing=BillingConfig.fixed(100), slot_id="A1", now=T0,
        )
        maintenance_service.erase_shop_data(shop_a.id)

        device = device_service.check_in(
            shop_a.id, description="Two", billing=BillingConfig.fixed(100), slot_id="A1", now=T0,
        )
        assert db.session.get(SlotBinding, "A1").device_id == device.id
