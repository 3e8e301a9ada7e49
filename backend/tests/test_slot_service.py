# Overview: Pytest coverage for the slot binding ledger and sticker batches.

from datetime import timedelta

import pytest

from chargesafe.extensions import db
from chargesafe.models import Device, SlotBinding
from chargesafe.models.devices import STATUS_COLLECTED
from chargesafe.models.slots import SLOT_AVAILABLE, SLOT_OCCUPIED
from chargesafe.services import device_service, slot_service
from chargesafe.services.device_service import BillingConfig
from chargesafe.services.slot_service import SlotOccupiedError, SlotOwnershipError
from chargesafe.validation import ValidationError
from conftest import T0


def _check_in(shop, slot_id, description="Infinix Hot 12"):
    return device_service.check_in(
        shop.id,
        description=description,
        billing=BillingConfig.fixed(300),
        slot_id=slot_id,
        now=T0,
    )


class TestLabels:
    """Sticker label generation."""

    @pytest.mark.parametrize("label,expected", [
        ("SLOT-01", "SLOT-02"),
        ("SLOT-09", "SLOT-10"),
        ("A9", "A10"),
        ("BAY-099", "BAY-100"),
        ("BAY", "BAY-1"),
    ])
    def test_next_slot_label(self, label, expected):
        assert slot_service.next_slot_label(label) == expected

    def test_label_batch(self):
        assert slot_service.slot_label_batch("SLOT-08", 3) == ["SLOT-08", "SLOT-09", "SLOT-10"]

    def test_label_batch_bounds(self):
        with pytest.raises(ValidationError):
            slot_service.slot_label_batch("SLOT-01", 0)
        with pytest.raises(ValidationError):
            slot_service.slot_label_batch("SLOT-01", slot_service.MAX_LABEL_BATCH + 1)

    def test_blank_slot_id_rejected(self):
        with pytest.raises(ValidationError):
            slot_service.normalize_slot_id("  ")


class TestOwnership:
    """The first shop to use a slot id owns it."""

    def test_register_claims_slots(self, db_session, shop_a):
        slots = slot_service.register_slots(shop_a.id, ["S-1", "S-2", "S-1"])

        assert [s.slot_id for s in slots] == ["S-1", "S-2"]
        assert all(s.owner_shop_id == shop_a.id for s in slots)
        assert all(s.status == SLOT_AVAILABLE for s in slots)

    def test_register_is_idempotent_for_owner(self, db_session, shop_a):
        slot_service.register_slots(shop_a.id, ["S-1"])
        slot_service.register_slots(shop_a.id, ["S-1"])
        assert db_session.query(SlotBinding).count() == 1

    def test_foreign_slot_rejected_and_nothing_claimed(self, db_session, shop_a, shop_b):
        slot_service.register_slots(shop_a.id, ["S-1"])

        with pytest.raises(SlotOwnershipError):
            slot_service.register_slots(shop_b.id, ["S-9", "S-1"])

        assert db.session.get(SlotBinding, "S-9") is None

    def test_check_in_on_foreign_slot_rejected(self, db_session, shop_a, shop_b):
        slot_service.register_slots(shop_a.id, ["S-1"])

        with pytest.raises(SlotOwnershipError):
            _check_in(shop_b, "S-1")
        assert db_session.query(Device).filter_by(shop_id=shop_b.id).count() == 0

    def test_bind_creates_row_on_first_use(self, db_session, shop_a):
        device = _check_in(shop_a, "NEW-1")
        slot = db.session.get(SlotBinding, "NEW-1")
        assert slot.owner_shop_id == shop_a.id
        assert slot.device_id == device.id
        assert slot.status == SLOT_OCCUPIED


class TestBindingState:
    """Conditional bind, idempotent release and stale bindings."""

    def test_release_is_idempotent(self, db_session, shop_a):
        slot_service.register_slots(shop_a.id, ["S-1"])

        slot_service.release("S-1", shop_a.id)
        slot_service.release("S-1", shop_a.id)
        db_session.commit()

        slot = db.session.get(SlotBinding, "S-1")
        assert slot.status == SLOT_AVAILABLE
        assert slot.device_id is None

    def test_release_unknown_slot_is_noop(self, db_session, shop_a):
        assert slot_service.release("NOPE", shop_a.id) is None

    def test_stale_binding_is_overwritten(self, db_session, shop_a):
        old = _check_in(shop_a, "S-1")
        # Collected outside the normal flow, leaving the slot bound
        old.status = STATUS_COLLECTED
        old.final_fee = 300
        old.end_time = T0
        db_session.commit()

        new = _check_in(shop_a, "S-1", description="Tecno Camon")
        assert db.session.get(SlotBinding, "S-1").device_id == new.id

    def test_release_stale_frees_slot(self, db_session, shop_a):
        old = _check_in(shop_a, "S-1")
        old.status = STATUS_COLLECTED
        old.final_fee = 300
        old.end_time = T0
        db_session.commit()

        slot = slot_service.release_stale(shop_a.id, "S-1")
        assert slot.status == SLOT_AVAILABLE
        assert slot.device_id is None

    def test_release_stale_refuses_active_device(self, db_session, shop_a):
        _check_in(shop_a, "S-1")

        with pytest.raises(SlotOccupiedError):
            slot_service.release_stale(shop_a.id, "S-1")
        assert db.session.get(SlotBinding, "S-1").status == SLOT_OCCUPIED

    def test_release_stale_unknown_slot(self, db_session, shop_a):
        with pytest.raises(slot_service.SlotNotFoundError):
            slot_service.release_stale(shop_a.id, "GHOST")

    def test_list_slots_by_status(self, db_session, shop_a):
        slot_service.register_slots(shop_a.id, ["S-1", "S-2"])
        _check_in(shop_a, "S-2")

        assert [s.slot_id for s in slot_service.list_slots(shop_a.id)] == ["S-1", "S-2"]
        assert [s.slot_id for s in slot_service.list_slots(shop_a.id, SLOT_OCCUPIED)] == ["S-2"]


class TestScan:
    """A scan opens checkout for occupied slots and check-in for free ones."""

    def test_free_slot_opens_check_in(self, db_session, shop_a):
        slot_service.register_slots(shop_a.id, ["S-1"])
        result = slot_service.resolve_scan(shop_a.id, " S-1 ")

        assert result == {"action": "check_in", "slot_id": "S-1", "device": None}

    def test_unknown_slot_opens_check_in(self, db_session, shop_a):
        assert slot_service.resolve_scan(shop_a.id, "S-77")["action"] == "check_in"

    def test_occupied_slot_opens_checkout(self, db_session, shop_a):
        device = _check_in(shop_a, "S-1")
        result = slot_service.resolve_scan(shop_a.id, "S-1")

        assert result["action"] == "checkout"
        assert result["device"]["order_number"] == device.order_number

    def test_lookup_ignores_collected_devices(self, db_session, shop_a):
        device = _check_in(shop_a, "S-1")
        device_service.collect(shop_a.id, device.order_number, "S-1", now=T0 + timedelta(hours=1))

        assert slot_service.lookup_active_device_for_slot("S-1", shop_a.id) is None

    def test_foreign_slot_scan_rejected(self, db_session, shop_a, shop_b):
        slot_service.register_slots(shop_a.id, ["S-1"])
        with pytest.raises(SlotOwnershipError):
            slot_service.resolve_scan(shop_b.id, "S-1")
