"""
HTTP tests for the booking core API
The app keeps one in-memory store per process, so every test works on its own
room types, booking ids and companies.
"""
from datetime import timedelta
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from main import app, get_ledger_service
from conftest import random_gst_number
from domain.exceptions import IntegrityViolation
from domain.temporal import today


def _unique(prefix: str) -> str:
    return f"{prefix}-{uuid4().hex[:8]}"


def _stay(offset: int = 60, nights: int = 2):
    check_in = today() + timedelta(days=offset)
    return check_in, check_in + timedelta(days=nights)


def _setup_room_type(client, headers, rooms: int = 3, rate: int = 1000) -> str:
    """Room type with inventory 50-80 days out and a flat BAR plan"""
    room_type_id = _unique("RT")
    res = client.post("/v1/room-types", json={
        "room_type_id": room_type_id,
        "name": "Deluxe Double",
        "code": "DLX",
        "base_price": rate,
        "max_occupancy": 2,
    }, headers=headers)
    assert res.status_code == 201

    start = today() + timedelta(days=50)
    res = client.post("/v1/availability/open", json={
        "room_type_id": room_type_id,
        "start_date": str(start),
        "end_date": str(start + timedelta(days=30)),
        "total_rooms": rooms,
    }, headers=headers)
    assert res.status_code == 201

    res = client.post("/v1/rates/plans", json={
        "name": "Best Available",
        "base_rates": [{"room_type_id": room_type_id, "rate": rate}],
    }, headers=headers)
    assert res.status_code == 201
    return room_type_id


def _create_company(client, headers, credit_limit: int = 10000) -> dict:
    res = client.post("/v1/corporate/companies", json={
        "name": "Acme Travel",
        "email": "travel@acme.example",
        "gst_number": random_gst_number(),
        "credit_limit": credit_limit,
    }, headers=headers)
    assert res.status_code == 201
    return res.json()


def _book(client, headers, room_type_id, stay, **extra):
    payload = {
        "booking_id": _unique("BK"),
        "room_type_id": room_type_id,
        "check_in": str(stay[0]),
        "check_out": str(stay[1]),
    }
    payload.update(extra)
    return client.post("/v1/bookings", json=payload, headers=headers)


# ============================================================================
# HEALTH & AUTH
# ============================================================================

class TestHealthAndAuth:

    @pytest.mark.api
    def test_health_needs_no_token(self, client):
        res = client.get("/v1/health")
        assert res.status_code == 200
        assert res.json()["status"] == "healthy"

    @pytest.mark.api
    def test_login_wrong_password(self, client):
        res = client.post("/token", data={"username": "admin", "password": "nope"})
        assert res.status_code == 401

    @pytest.mark.api
    def test_users_me(self, client, staff_headers):
        res = client.get("/v1/users/me", headers=staff_headers)
        assert res.status_code == 200
        assert res.json()["username"] == "staff"

    @pytest.mark.api
    def test_missing_token_rejected(self, client):
        res = client.get("/v1/room-types")
        assert res.status_code == 401

    @pytest.mark.api
    @pytest.mark.edge_case
    def test_guest_cannot_register_room_type(self, client, guest_headers):
        res = client.post("/v1/room-types", json={
            "room_type_id": _unique("RT"), "name": "Suite", "code": "STE", "base_price": 5000,
        }, headers=guest_headers)
        assert res.status_code == 403

    @pytest.mark.api
    @pytest.mark.edge_case
    def test_staff_cannot_create_company(self, client, staff_headers):
        res = client.post("/v1/corporate/companies", json={
            "name": "Acme", "gst_number": random_gst_number(), "credit_limit": 1000,
        }, headers=staff_headers)
        assert res.status_code == 403


# ============================================================================
# ERROR SHAPES
# ============================================================================

class TestErrorShapes:

    @pytest.mark.api
    def test_request_validation_is_400(self, client, auth_headers):
        res = client.post("/v1/bookings", json={"booking_id": "X"}, headers=auth_headers)
        assert res.status_code == 400
        body = res.json()
        assert body["kind"] == "ValidationError"
        assert body["details"]["errors"]

    @pytest.mark.api
    def test_unknown_company_is_404(self, client, auth_headers):
        res = client.get(f"/v1/corporate/companies/{uuid4()}", headers=auth_headers)
        assert res.status_code == 404
        assert res.json()["kind"] == "NotFound"

    @pytest.mark.api
    def test_invalid_gst_number(self, client, auth_headers):
        res = client.post("/v1/corporate/companies", json={
            "name": "Acme", "gst_number": "NOT-A-GST", "credit_limit": 1000,
        }, headers=auth_headers)
        assert res.status_code == 400

    @pytest.mark.api
    def test_duplicate_gst_number(self, client, auth_headers):
        gst = random_gst_number()
        payload = {"name": "Acme", "gst_number": gst, "credit_limit": 1000}
        assert client.post("/v1/corporate/companies", json=payload, headers=auth_headers).status_code == 201
        res = client.post("/v1/corporate/companies", json=payload, headers=auth_headers)
        assert res.status_code == 400
        assert res.json()["kind"] == "ValidationError"

    @pytest.mark.api
    def test_zero_adjustment_rejected(self, client, auth_headers):
        company = _create_company(client, auth_headers)
        res = client.post("/v1/corporate/credit/adjustment", json={
            "company_id": company["company_id"], "amount": 0, "reason": "Nothing at all",
        }, headers=auth_headers)
        assert res.status_code == 400


class TestAPIMockErrors:
    """Service failures surfaced through the handlers"""

    def setup_method(self):
        self.mock_ledger = AsyncMock()
        app.dependency_overrides[get_ledger_service] = lambda: self.mock_ledger

    def teardown_method(self):
        app.dependency_overrides = {}

    @pytest.mark.api
    def test_value_error_maps_to_400(self, client, auth_headers):
        self.mock_ledger.list_transactions.side_effect = ValueError("Mock Error")
        res = client.get("/v1/corporate/credit/transactions", headers=auth_headers)
        assert res.status_code == 400
        assert res.json()["message"] == "Mock Error"

    @pytest.mark.api
    def test_unexpected_error_maps_to_500(self, auth_headers):
        self.mock_ledger.list_transactions.side_effect = RuntimeError("boom")
        client = TestClient(app, raise_server_exceptions=False)
        res = client.get("/v1/corporate/credit/transactions", headers=auth_headers)
        assert res.status_code == 500
        assert res.json()["kind"] == "InternalError"

    @pytest.mark.api
    def test_integrity_violation_is_a_server_error(self, client, auth_headers, staff_headers):
        self.mock_ledger.list_transactions.side_effect = IntegrityViolation(
            "Credit ledger chain head failed verification", {"companyId": "C-1", "ledgerSequence": 4},
        )

        res = client.get("/v1/corporate/credit/transactions", headers=staff_headers)
        assert res.status_code == 500
        assert res.json() == {"kind": "IntegrityViolation",
                              "message": "Credit ledger chain head failed verification"}

        res = client.get("/v1/corporate/credit/transactions", headers=auth_headers)
        assert res.status_code == 500
        assert res.json()["details"]["ledgerSequence"] == 4


# ============================================================================
# AVAILABILITY & RATES
# ============================================================================

class TestAvailabilityAPI:

    @pytest.mark.api
    @pytest.mark.integration
    def test_open_and_check(self, client, auth_headers):
        room_type_id = _setup_room_type(client, auth_headers, rooms=4)
        check_in, check_out = _stay()
        res = client.get("/v1/availability", params={
            "room_type_id": room_type_id, "check_in": str(check_in), "check_out": str(check_out), "qty": 2,
        }, headers=auth_headers)
        assert res.status_code == 200
        body = res.json()
        assert body["available"] is True
        assert body["rooms_available"] == 4
        assert body["nights"] == 2

    @pytest.mark.api
    @pytest.mark.integration
    def test_reserve_and_release(self, client, auth_headers, staff_headers):
        room_type_id = _setup_room_type(client, auth_headers, rooms=2)
        check_in, check_out = _stay()
        booking_id = _unique("BK")
        res = client.post("/v1/availability/reserve", json={
            "room_type_id": room_type_id, "check_in": str(check_in), "check_out": str(check_out),
            "quantity": 2, "booking_id": booking_id,
        }, headers=staff_headers)
        assert res.status_code == 200
        assert all(row["available_rooms"] == 0 for row in res.json())

        res = client.post("/v1/availability/release", json={"booking_id": booking_id}, headers=staff_headers)
        assert res.status_code == 200
        res = client.get("/v1/availability", params={
            "room_type_id": room_type_id, "check_in": str(check_in), "check_out": str(check_out), "qty": 2,
        }, headers=staff_headers)
        assert res.json()["available"] is True

    @pytest.mark.api
    @pytest.mark.edge_case
    def test_reserve_over_capacity(self, client, auth_headers):
        room_type_id = _setup_room_type(client, auth_headers, rooms=1)
        check_in, check_out = _stay()
        res = client.post("/v1/availability/reserve", json={
            "room_type_id": room_type_id, "check_in": str(check_in), "check_out": str(check_out),
            "quantity": 2, "booking_id": _unique("BK"),
        }, headers=auth_headers)
        assert res.status_code == 400
        assert res.json()["kind"] == "InsufficientInventory"

    @pytest.mark.api
    def test_block_requires_admin(self, client, auth_headers):
        room_type_id = _setup_room_type(client, auth_headers)
        manager_token = client.post("/token", data={"username": "manager", "password": "manager123"})
        manager_headers = {"Authorization": f"Bearer {manager_token.json()['access_token']}"}
        start = today() + timedelta(days=55)
        payload = {
            "room_type_id": room_type_id, "room_ids": ["101"],
            "start_date": str(start), "end_date": str(start + timedelta(days=1)),
        }
        assert client.post("/v1/availability/block", json=payload, headers=manager_headers).status_code == 403
        assert client.post("/v1/availability/block", json=payload, headers=auth_headers).status_code == 200


class TestRatesAPI:

    @pytest.mark.api
    @pytest.mark.integration
    def test_best_rate(self, client, auth_headers):
        room_type_id = _setup_room_type(client, auth_headers, rate=1200)
        check_in, check_out = _stay()
        res = client.post("/v1/rates/best", json={
            "room_type_id": room_type_id, "check_in": str(check_in), "check_out": str(check_out),
        }, headers=auth_headers)
        assert res.status_code == 200
        body = res.json()
        assert body["total_amount"] == 2400.0
        assert len(body["breakdown"]) == 2

    @pytest.mark.api
    @pytest.mark.integration
    def test_override_pins_one_night(self, client, auth_headers):
        room_type_id = _setup_room_type(client, auth_headers)
        check_in, check_out = _stay()
        res = client.post("/v1/rates/overrides", json={
            "date": str(check_in), "room_type_id": room_type_id, "rate": 700, "reason": "Promo night",
        }, headers=auth_headers)
        assert res.status_code == 201
        res = client.post("/v1/rates/best", json={
            "room_type_id": room_type_id, "check_in": str(check_in), "check_out": str(check_out),
        }, headers=auth_headers)
        assert res.json()["total_amount"] == 1700.0

    @pytest.mark.api
    def test_dynamic_rule_scoped_to_room_type(self, client, auth_headers):
        room_type_id = _setup_room_type(client, auth_headers)
        res = client.post("/v1/rates/dynamic-rules", json={
            "name": "High demand",
            "applicable_room_types": [room_type_id],
            "tiers": [{"min_occupancy": 80, "max_occupancy": 100, "price_adjustment": 15}],
        }, headers=auth_headers)
        assert res.status_code == 201
        assert res.json()["tier_count"] == 1

    @pytest.mark.api
    @pytest.mark.edge_case
    def test_too_many_guests_is_404(self, client, auth_headers):
        room_type_id = _setup_room_type(client, auth_headers)
        check_in, check_out = _stay()
        res = client.post("/v1/rates/best", json={
            "room_type_id": room_type_id, "check_in": str(check_in), "check_out": str(check_out),
            "adults": 3,
        }, headers=auth_headers)
        assert res.status_code == 404

    @pytest.mark.api
    @pytest.mark.integration
    def test_closed_to_arrival_special_period(self, client, auth_headers):
        room_type_id = _setup_room_type(client, auth_headers)
        check_in, check_out = _stay(offset=65)
        res = client.post("/v1/special-periods", json={
            "name": "Convention",
            "start_date": str(check_in),
            "end_date": str(check_in + timedelta(days=1)),
            "booking_restriction": "closed_to_arrival",
            "rate_adjustments": [{"room_type_id": room_type_id, "adjustment_type": "percentage", "value": 0}],
        }, headers=auth_headers)
        assert res.status_code == 201

        res = client.get("/v1/restrictions", params={
            "room_type_id": room_type_id, "check_in": str(check_in), "check_out": str(check_out),
        }, headers=auth_headers)
        assert res.json()["allowed"] is False

        res = _book(client, auth_headers, room_type_id, (check_in, check_out))
        assert res.status_code == 400
        assert res.json()["kind"] == "SeasonalRestriction"


# ============================================================================
# BOOKINGS
# ============================================================================

class TestBookingsAPI:

    @pytest.mark.api
    @pytest.mark.integration
    def test_corporate_booking_then_cancel(self, client, auth_headers):
        room_type_id = _setup_room_type(client, auth_headers)
        company = _create_company(client, auth_headers)
        stay = _stay()

        booking_id = _unique("BK")
        res = _book(client, auth_headers, room_type_id, stay,
                    booking_id=booking_id, company_id=company["company_id"])
        assert res.status_code == 201
        body = res.json()
        assert body["status"] == "confirmed"
        assert body["total_amount"] == 2000.0
        assert body["credit_status"] == "processed"

        res = client.get(f"/v1/corporate/companies/{company['company_id']}", headers=auth_headers)
        assert res.json()["available_credit"] == 8000.0

        res = client.post(f"/v1/bookings/{booking_id}/cancel", json={}, headers=auth_headers)
        assert res.status_code == 200
        assert res.json()["refund_amount"] == 2000.0

        res = client.get(f"/v1/corporate/companies/{company['company_id']}", headers=auth_headers)
        assert res.json()["available_credit"] == 10000.0

    @pytest.mark.api
    @pytest.mark.integration
    def test_booking_without_company(self, client, guest_headers, auth_headers):
        room_type_id = _setup_room_type(client, auth_headers)
        res = _book(client, guest_headers, room_type_id, _stay(), rooms_count=2)
        assert res.status_code == 201
        body = res.json()
        assert body["total_amount"] == 4000.0
        assert body["credit_transaction_id"] is None

    @pytest.mark.api
    @pytest.mark.edge_case
    def test_insufficient_credit_keeps_rooms(self, client, auth_headers):
        room_type_id = _setup_room_type(client, auth_headers, rooms=1)
        company = _create_company(client, auth_headers, credit_limit=1500)
        stay = _stay()

        res = _book(client, auth_headers, room_type_id, stay, company_id=company["company_id"])
        assert res.status_code == 400
        assert res.json()["kind"] == "InsufficientCredit"

        res = client.get("/v1/availability", params={
            "room_type_id": room_type_id, "check_in": str(stay[0]), "check_out": str(stay[1]),
        }, headers=auth_headers)
        assert res.json()["rooms_available"] == 1

    @pytest.mark.api
    @pytest.mark.integration
    def test_modify_extends_stay(self, client, auth_headers):
        room_type_id = _setup_room_type(client, auth_headers)
        company = _create_company(client, auth_headers)
        check_in, check_out = _stay()
        booking_id = _unique("BK")
        _book(client, auth_headers, room_type_id, (check_in, check_out),
              booking_id=booking_id, company_id=company["company_id"])

        res = client.post(f"/v1/bookings/{booking_id}/modify", json={
            "check_out": str(check_out + timedelta(days=1)),
        }, headers=auth_headers)
        assert res.status_code == 200
        body = res.json()
        assert body["previous_total"] == 2000.0
        assert body["total_amount"] == 3000.0
        assert body["delta"] == 1000.0

        res = client.get(f"/v1/corporate/companies/{company['company_id']}", headers=auth_headers)
        assert res.json()["available_credit"] == 7000.0

    @pytest.mark.api
    @pytest.mark.edge_case
    def test_duplicate_booking_id(self, client, auth_headers):
        room_type_id = _setup_room_type(client, auth_headers)
        booking_id = _unique("BK")
        assert _book(client, auth_headers, room_type_id, _stay(), booking_id=booking_id).status_code == 201
        res = _book(client, auth_headers, room_type_id, _stay(offset=70), booking_id=booking_id)
        assert res.status_code == 400

    @pytest.mark.api
    @pytest.mark.edge_case
    def test_open_booking_blocks_company_delete(self, client, auth_headers):
        room_type_id = _setup_room_type(client, auth_headers)
        company = _create_company(client, auth_headers)
        _book(client, auth_headers, room_type_id, _stay(), company_id=company["company_id"])

        res = client.delete(f"/v1/corporate/companies/{company['company_id']}", headers=auth_headers)
        assert res.status_code == 400
        assert res.json()["kind"] == "CompanyInactive"


# ============================================================================
# CORPORATE COMPANIES & CREDIT
# ============================================================================

class TestCorporateAPI:

    @pytest.mark.api
    def test_update_and_toggle(self, client, auth_headers):
        company = _create_company(client, auth_headers)
        company_id = company["company_id"]

        res = client.patch(f"/v1/corporate/companies/{company_id}", json={"credit_limit": 15000},
                           headers=auth_headers)
        assert res.status_code == 200
        assert res.json()["available_credit"] == 15000.0

        res = client.patch(f"/v1/corporate/companies/{company_id}/toggle-status", headers=auth_headers)
        assert res.json()["is_active"] is False

    @pytest.mark.api
    def test_delete_company_without_bookings(self, client, auth_headers):
        company = _create_company(client, auth_headers)
        res = client.delete(f"/v1/corporate/companies/{company['company_id']}", headers=auth_headers)
        assert res.status_code == 204

    @pytest.mark.api
    def test_low_credit_listing(self, client, auth_headers, staff_headers):
        company = _create_company(client, auth_headers, credit_limit=500)
        res = client.get("/v1/corporate/companies/low-credit", params={"threshold": 1000},
                         headers=staff_headers)
        assert res.status_code == 200
        assert company["company_id"] in [c["company_id"] for c in res.json()]

    @pytest.mark.api
    @pytest.mark.integration
    def test_update_credit_and_summary(self, client, auth_headers):
        company = _create_company(client, auth_headers)
        company_id = company["company_id"]
        res = client.patch(f"/v1/corporate/companies/{company_id}/update-credit", json={
            "amount": -2500, "description": "Conference hall",
        }, headers=auth_headers)
        assert res.status_code == 200
        assert res.json()["transaction_type"] == "adjustment"
        assert res.json()["adjustment_direction"] == "decrease"

        res = client.get(f"/v1/corporate/credit/summary/{company_id}", headers=auth_headers)
        assert res.status_code == 200
        assert res.json()["total_debits"] == 2500


class TestCreditAPI:

    @pytest.mark.api
    @pytest.mark.integration
    def test_pending_transaction_approval(self, client, auth_headers, staff_headers):
        company = _create_company(client, auth_headers)
        res = client.post("/v1/corporate/credit/transactions", json={
            "company_id": company["company_id"],
            "transaction_type": "debit",
            "amount": 1200,
            "description": "Banquet",
        }, headers=staff_headers)
        assert res.status_code == 201
        transaction = res.json()
        assert transaction["status"] == "pending"

        res = client.patch(f"/v1/corporate/credit/transactions/{transaction['transaction_id']}/approve",
                           json={}, headers=staff_headers)
        assert res.status_code == 403

        res = client.patch(f"/v1/corporate/credit/transactions/{transaction['transaction_id']}/approve",
                           json={"notes": "ok"}, headers=auth_headers)
        assert res.status_code == 200
        assert res.json()["status"] == "processed"
        assert res.json()["integrity_hash"]

        res = client.get("/v1/corporate/credit/transactions",
                         params={"company_id": company["company_id"], "status": "processed"},
                         headers=staff_headers)
        assert [t["transaction_id"] for t in res.json()] == [transaction["transaction_id"]]

    @pytest.mark.api
    def test_bulk_approve_reports_unknown_ids(self, client, auth_headers):
        company = _create_company(client, auth_headers)
        res = client.post("/v1/corporate/credit/transactions", json={
            "company_id": company["company_id"], "transaction_type": "debit", "amount": 300,
        }, headers=auth_headers)
        pending_id = res.json()["transaction_id"]
        missing_id = str(uuid4())

        res = client.patch("/v1/corporate/credit/bulk-approve", json={
            "transaction_ids": [pending_id, missing_id],
        }, headers=auth_headers)
        assert res.status_code == 200
        body = res.json()
        assert [str(t) for t in body["approved"]] == [pending_id]
        assert [str(f["transaction_id"]) for f in body["failed"]] == [missing_id]

    @pytest.mark.api
    def test_validate_and_process_booking_credit(self, client, auth_headers, staff_headers):
        company = _create_company(client, auth_headers, credit_limit=5000)
        res = client.post("/v1/corporate/credit/validate", json={
            "company_id": company["company_id"], "amount": 6000,
        }, headers=staff_headers)
        assert res.status_code == 200
        assert res.json()["valid"] is False

        res = client.post("/v1/corporate/credit/process-booking", json={
            "company_id": company["company_id"], "booking_id": _unique("EXT"), "amount": 2000,
        }, headers=staff_headers)
        assert res.status_code == 200
        assert res.json()["balance"] == 3000.0

    @pytest.mark.api
    @pytest.mark.integration
    def test_limit_increase_flow(self, client, auth_headers, staff_headers):
        company = _create_company(client, auth_headers)
        res = client.post("/v1/corporate/credit/request-limit-increase", json={
            "company_id": company["company_id"],
            "requested_limit": 12000,
            "justification": "Quarterly offsite moved to this hotel",
        }, headers=staff_headers)
        assert res.status_code == 201
        request_id = res.json()["request_id"]

        res = client.get("/v1/corporate/credit/pending-requests", headers=auth_headers)
        assert request_id in [r["request_id"] for r in res.json()]

        res = client.post("/v1/corporate/credit/process-limit-request", json={
            "request_id": request_id, "action": "approve", "comments": "Good history",
        }, headers=auth_headers)
        assert res.status_code == 200
        assert res.json()["status"] == "approved"

        res = client.get(f"/v1/corporate/companies/{company['company_id']}", headers=auth_headers)
        assert res.json()["credit_limit"] == 12000.0
        assert res.json()["available_credit"] == 12000.0

    @pytest.mark.api
    def test_short_justification_rejected(self, client, auth_headers):
        company = _create_company(client, auth_headers)
        res = client.post("/v1/corporate/credit/request-limit-increase", json={
            "company_id": company["company_id"], "requested_limit": 20000, "justification": "more",
        }, headers=auth_headers)
        assert res.status_code == 400

    @pytest.mark.api
    def test_manual_adjustment(self, client, auth_headers):
        company = _create_company(client, auth_headers)
        res = client.post("/v1/corporate/credit/adjustment", json={
            "company_id": company["company_id"], "amount": -750, "reason": "Minibar correction",
        }, headers=auth_headers)
        assert res.status_code == 201
        assert res.json()["adjustment_direction"] == "decrease"
        assert res.json()["balance"] == 9250.0

    @pytest.mark.api
    def test_overdue_and_monthly_report(self, client, auth_headers):
        res = client.get("/v1/corporate/credit/overdue", headers=auth_headers)
        assert res.status_code == 200
        assert isinstance(res.json(), list)

        now = today()
        res = client.get("/v1/corporate/credit/monthly-report",
                         params={"year": now.year, "month": now.month}, headers=auth_headers)
        assert res.status_code == 200


class TestMonitoringAndSecurityAPI:

    @pytest.mark.api
    def test_monitoring_status_lists_company(self, client, auth_headers):
        company = _create_company(client, auth_headers)
        res = client.get("/v1/corporate/monitoring/status", headers=auth_headers)
        assert res.status_code == 200
        assert company["company_id"] in [str(s["company_id"]) for s in res.json()]

    @pytest.mark.api
    def test_monitoring_requires_manager(self, client, staff_headers):
        res = client.get("/v1/corporate/monitoring/status", headers=staff_headers)
        assert res.status_code == 403

    @pytest.mark.api
    @pytest.mark.integration
    def test_verify_and_audit(self, client, auth_headers):
        company = _create_company(client, auth_headers)
        ids = []
        for amount in (400, 600):
            res = client.post("/v1/corporate/credit/adjustment", json={
                "company_id": company["company_id"], "amount": -amount, "reason": "Room service",
            }, headers=auth_headers)
            ids.append(res.json()["transaction_id"])

        res = client.get(f"/v1/corporate/security/verify-transaction/{ids[1]}", headers=auth_headers)
        assert res.status_code == 200
        assert res.json()["valid"] is True
        assert res.json()["chain_valid"] is True

        res = client.post("/v1/corporate/security/batch-verify", json={"transaction_ids": ids},
                          headers=auth_headers)
        assert res.status_code == 200

        res = client.post("/v1/corporate/security/daily-audit", headers=auth_headers)
        assert res.status_code == 200
        assert res.json()["invalid"] == 0
        assert res.json()["verified"] >= 2
