# Overview: Pytest coverage for the JSON API routes.

"""
API Route Tests

Exercise the HTTP surface end to end through the Flask test client:
authentication, status codes of the error table and the shape of the
JSON payloads the front desk relies on.
"""

import pytest

from conftest import SHOP_PASSWORD, auth_headers, get_auth_token


@pytest.fixture
def headers_a(client, shop_a):
    return auth_headers(get_auth_token(client, shop_a.email))


def _check_in(client, headers, **overrides):
    body = {
        "description": "Tecno Spark",
        "billing_type": "hourly",
        "hourly_rate": 100,
        "customer_name": "Ada",
        "customer_phone": "08012345678",
        "slot_id": "A1",
    }
    body.update(overrides)
    return client.post("/api/devices", json=body, headers=headers)


class TestAuthRoutes:
    def test_register_returns_token(self, client, db_session):
        response = client.post("/api/auth/register", json={
            "email": "New@Shop.test",
            "password": SHOP_PASSWORD,
            "shop_name": "New Shop",
            "slots": 12,
        })

        assert response.status_code == 201
        assert response.json["shop"]["email"] == "new@shop.test"
        assert response.json["shop"]["slot_count"] == 12
        assert response.json["shop"]["currency"] == "NGN"

        me = client.get("/api/auth/me", headers=auth_headers(response.json["token"]))
        assert me.status_code == 200
        assert me.json["shop"]["shop_name"] == "New Shop"

    def test_register_duplicate_email(self, client, shop_a):
        response = client.post("/api/auth/register", json={
            "email": shop_a.email,
            "password": SHOP_PASSWORD,
            "shop_name": "Copy",
        })
        assert response.status_code == 409

    def test_register_weak_password(self, client, db_session):
        response = client.post("/api/auth/register", json={
            "email": "weak@shop.test",
            "password": "password",
            "shop_name": "Weak",
        })
        assert response.status_code == 400

    def test_login_wrong_password(self, client, shop_a):
        response = client.post("/api/auth/login", json={"email": shop_a.email, "password": "Nope123!"})
        assert response.status_code == 401

    def test_missing_token(self, client, db_session):
        assert client.get("/api/devices").status_code == 401
        assert client.get("/api/devices", headers=auth_headers("bogus")).status_code == 401

    def test_logout_revokes_token(self, client, headers_a):
        assert client.post("/api/auth/logout", headers=headers_a).status_code == 200
        assert client.get("/api/auth/me", headers=headers_a).status_code == 401


class TestDeviceRoutes:
    def test_check_in_and_collect_flow(self, client, headers_a):
        response = _check_in(client, headers_a)
        assert response.status_code == 201
        device = response.json["device"]
        assert device["order_number"] == "CS-0001"
        assert device["status"] == "charging"
        assert device["fee"] == 50

        fee = client.get("/api/devices/cs-0001/fee", headers=headers_a)
        assert fee.status_code == 200
        assert fee.json["fee"] == 50

        ready = client.post("/api/devices/CS-0001/ready", headers=headers_a)
        assert ready.json["device"]["status"] == "ready"
        assert client.post("/api/devices/CS-0001/ready", headers=headers_a).status_code == 409

        mismatch = client.post("/api/devices/CS-0001/collect", json={"proof_token": "B2"}, headers=headers_a)
        assert mismatch.status_code == 422

        collected = client.post("/api/devices/CS-0001/collect", json={"proof_token": "A1"}, headers=headers_a)
        assert collected.status_code == 200
        assert collected.json["device"]["status"] == "collected"
        assert collected.json["device"]["slot_id"] is None
        assert collected.json["device"]["end_time"].endswith("Z")

        again = client.post("/api/devices/CS-0001/collect", json={"proof_token": "A1"}, headers=headers_a)
        assert again.status_code == 409

    def test_occupied_slot_is_conflict(self, client, headers_a):
        assert _check_in(client, headers_a).status_code == 201
        response = _check_in(client, headers_a, description="Another phone")
        assert response.status_code == 409

    def test_validation_errors(self, client, headers_a):
        assert _check_in(client, headers_a, description="").status_code == 400
        assert _check_in(client, headers_a, billing_type="weekly").status_code == 400
        assert _check_in(client, headers_a, hourly_rate="12.5").status_code == 400

    def test_list_views(self, client, headers_a):
        _check_in(client, headers_a)
        _check_in(client, headers_a, slot_id=None, billing_type="fixed", fixed_fee=300, description="Power bank")

        active = client.get("/api/devices", headers=headers_a)
        assert len(active.json["devices"]) == 2

        found = client.get("/api/devices?q=power", headers=headers_a)
        assert [d["description"] for d in found.json["devices"]] == ["Power bank"]

        assert client.get("/api/devices?view=history", headers=headers_a).json["devices"] == []
        assert client.get("/api/devices?view=bogus", headers=headers_a).status_code == 400

    def test_unknown_device(self, client, headers_a):
        assert client.get("/api/devices/CS-4040", headers=headers_a).status_code == 404


class TestSlotRoutes:
    def test_register_list_and_scan(self, client, headers_a):
        response = client.post("/api/slots", json={"start": "SLOT-01", "count": 3}, headers=headers_a)
        assert response.status_code == 201
        assert [s["slot_id"] for s in response.json["slots"]] == ["SLOT-01", "SLOT-02", "SLOT-03"]

        _check_in(client, headers_a, slot_id="SLOT-02")

        occupied = client.get("/api/slots?status=occupied", headers=headers_a)
        assert [s["order_number"] for s in occupied.json["slots"]] == ["CS-0001"]

        scan = client.get("/api/slots/scan/SLOT-02", headers=headers_a)
        assert scan.json["action"] == "checkout"
        scan = client.get("/api/slots/scan/SLOT-03", headers=headers_a)
        assert scan.json["action"] == "check_in"

    def test_label_preview(self, client, headers_a):
        response = client.get("/api/slots/labels?start=A9&count=2", headers=headers_a)
        assert response.json["labels"] == ["A9", "A10"]
        assert client.get("/api/slots/labels?start=A9&count=x", headers=headers_a).status_code == 400

    def test_release_active_slot_refused(self, client, headers_a):
        _check_in(client, headers_a)
        assert client.post("/api/slots/A1/release", headers=headers_a).status_code == 409
        assert client.post("/api/slots/ZZ/release", headers=headers_a).status_code == 404

    def test_release_overlong_slot_id_is_bad_input(self, client, headers_a):
        slot_id = "X" * 65
        response = client.post(f"/api/slots/{slot_id}/release", headers=headers_a)
        assert response.status_code == 400
        assert response.json["details"]["field"] == "slot_id"


class TestCustomerRoutes:
    def test_lookup_and_flag(self, client, headers_a):
        _check_in(client, headers_a)

        lookup = client.get("/api/customers/lookup?phone=08012345678", headers=headers_a)
        assert lookup.json["trust"]["status"] == "good"
        assert lookup.json["customer"]["visit_count"] == 1

        flagged = client.post(
            "/api/customers/08012345678/flag",
            json={"flagged": True, "reason": "Disputed fee"},
            headers=headers_a,
        )
        assert flagged.status_code == 200

        lookup = client.get("/api/customers/lookup?phone=08012345678", headers=headers_a)
        assert lookup.json["flag_as_risk"] is True
        assert lookup.json["trust"] == {"status": "bad", "reason": "Disputed fee"}

        listing = client.get("/api/customers?flagged=true", headers=headers_a)
        assert [c["phone"] for c in listing.json["customers"]] == ["08012345678"]

    def test_flag_errors(self, client, headers_a):
        assert client.post("/api/customers/08099999999/flag", json={"flagged": True}, headers=headers_a).status_code == 404
        assert client.post("/api/customers/08099999999/flag", json={}, headers=headers_a).status_code == 400


class TestPosRoutes:
    def test_record_and_balance(self, client, headers_a):
        response = client.post("/api/pos/transactions", json={
            "type": "withdrawal",
            "amount": 10000,
            "fee": 200,
        }, headers=headers_a)
        assert response.status_code == 201
        assert response.json["transaction"]["total"] == 10200

        day = client.get("/api/pos/transactions?opening_cash=50000", headers=headers_a)
        assert day.json["summary"] == {
            "cash_in_hand": 40000,
            "terminal_float": 10200,
            "daily_profit": 200,
            "transaction_count": 1,
        }

    def test_suggested_fee(self, client, headers_a):
        response = client.get("/api/pos/suggested-fee?type=withdrawal&amount=7500", headers=headers_a)
        assert response.json == {"fee": 200}

    def test_invalid_input(self, client, headers_a):
        response = client.post("/api/pos/transactions", json={"type": "withdrawal", "amount": -1}, headers=headers_a)
        assert response.status_code == 400
        assert client.get("/api/pos/transactions?date=yesterday", headers=headers_a).status_code == 400


class TestShopRoutes:
    def test_update_profile(self, client, headers_a):
        response = client.patch("/api/shop", json={
            "currency": "USD",
            "coordinates": {"lat": 6.45, "lng": 3.39},
        }, headers=headers_a)
        assert response.status_code == 200
        assert response.json["shop"]["currency"] == "USD"
        assert response.json["shop"]["coordinates"] == {"lat": 6.45, "lng": 3.39}

        assert client.patch("/api/shop", json={"currency": "EUR"}, headers=headers_a).status_code == 400
        assert client.patch("/api/shop", json={"shop_name": " "}, headers=headers_a).status_code == 400

    def test_erase_requires_confirmation(self, client, headers_a):
        _check_in(client, headers_a)

        assert client.post("/api/shop/erase", json={"confirm": "yes"}, headers=headers_a).status_code == 400

        response = client.post("/api/shop/erase", json={"confirm": "DELETE"}, headers=headers_a)
        assert response.status_code == 200
        assert response.json["erased"]["devices"] == 1
        assert client.get("/api/devices?view=all", headers=headers_a).json["devices"] == []

    def test_monthly_report(self, client, headers_a):
        _check_in(client, headers_a, slot_id=None, billing_type="fixed", fixed_fee=300)

        report = client.get("/api/reports/monthly", headers=headers_a)
        assert report.status_code == 200
        assert report.json["charge_revenue"] == 300
        assert client.get("/api/reports/monthly?month=March", headers=headers_a).status_code == 400

    def test_shop_directory(self, client, db_session, headers_a, shop_b):
        shop_b.city = "Abuja"
        db_session.commit()

        response = client.get("/api/shops", headers=headers_a)
        assert response.status_code == 200
        shops = response.json["shops"]
        assert [s["shop_name"] for s in shops] == ["Beta Charge", "Acme Charge"]
        assert "email" not in shops[0]
        assert shops[0]["city"] == "Abuja"

        by_city = client.get("/api/shops?q=abuja", headers=headers_a).json["shops"]
        assert [s["shop_name"] for s in by_city] == ["Beta Charge"]
        by_name = client.get("/api/shops?q=ACME", headers=headers_a).json["shops"]
        assert [s["shop_name"] for s in by_name] == ["Acme Charge"]

        assert client.get("/api/shops").status_code == 401


class TestSystemRoutes:
    def test_health(self, client, db_session):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json["checks"]["database"]["status"] == "healthy"

    def test_stream_requires_auth(self, client, db_session):
        assert client.get("/api/stream").status_code == 401

    def test_stream_rejects_unknown_collection(self, client, shop_a):
        token = get_auth_token(client, shop_a.email)
        response = client.get(f"/api/stream?token={token}&collections=invoices")
        assert response.status_code == 400

    def test_cors_headers_for_allowed_origin(self, client, db_session):
        response = client.get("/health", headers={"Origin": "http://localhost:5173"})
        assert response.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"
        response = client.get("/health", headers={"Origin": "http://evil.test"})
        assert "Access-Control-Allow-Origin" not in response.headers
