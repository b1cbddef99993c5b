"""
HTTP API tests.

Verifies:
- Health reporting
- Input errors answer 400, missing records 404, state conflicts 409
- A full day over HTTP: order, confirm, message, receive, pay
"""

import pytest

from ordercycle.models import STATUS_COMPLETED, STATUS_CONFIRMED


# =============================================================================
# HEALTH
# =============================================================================


class TestHealth:

    def test_degraded_before_initialization(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "degraded"
        assert body["checks"]["database"]["status"] == "healthy"

    def test_healthy_once_rows_exist(self, client, db_session):
        client.post("/api/cutoff/open")
        client.post("/api/cycle/reset")
        resp = client.get("/health")
        assert resp.get_json()["status"] == "healthy"


# =============================================================================
# INPUT AND STATE ERRORS
# =============================================================================


class TestErrorResponses:

    @pytest.mark.parametrize(
        "path,payload",
        [
            ("/api/cycle/confirm", {}),
            ("/api/cutoff/close", {"actor": "  "}),
            ("/api/cutoff/close-only", {}),
            ("/api/sale-orders", {"customer_id": 1, "items": []}),
            ("/api/sale-orders", {"customer_id": "1.5", "items": [{"product_id": 1, "quantity": 1}]}),
            ("/api/purchase-orders/send-sms", {"purchase_order_numbers": []}),
            ("/api/inbound/PO-260301-001/complete", {"items": [{"product_id": 1, "received_quantity": 1}]}),
        ],
    )
    def test_bad_input_is_400(self, client, db_session, path, payload):
        resp = client.post(path, json=payload)
        assert resp.status_code == 400, f"{path} returned {resp.status_code}"
        assert "error" in resp.get_json()

    @pytest.mark.parametrize(
        "path",
        [
            "/api/sale-orders/SO-260301-404",
            "/api/purchase-orders/PO-260301-404",
            "/api/inbound/ledgers/PL-260301-404",
            "/api/supplier-accounts/404",
        ],
    )
    def test_unknown_record_is_404(self, client, db_session, path):
        resp = client.get(path)
        assert resp.status_code == 404
        assert resp.get_json()["code"].endswith("NOT_FOUND")

    def test_closing_a_closed_window_is_409(self, client, db_session):
        resp = client.post("/api/cutoff/close-only", json={"actor": "manager"})
        assert resp.status_code == 409
        assert resp.get_json()["code"] == "ALREADY_CLOSED"

    def test_manual_completion_is_rejected(self, client, db_session, place_order, tofu):
        client.post("/api/cycle/reset")
        place_order([(tofu, 1)])
        client.post("/api/cycle/confirm", json={"actor": "manager"})
        number = client.get("/api/purchase-orders").get_json()["items"][0]["purchase_order_number"]

        resp = client.post(f"/api/purchase-orders/{number}/status", json={"status": STATUS_COMPLETED})
        assert resp.status_code == 409


# =============================================================================
# A DAY OVER HTTP
# =============================================================================


class TestDailyFlow:

    def test_order_confirm_message_receive_pay(self, client, db_session, customer, tofu, soy_milk, supplier_a, message_provider):
        assert client.post("/api/cycle/reset").status_code == 200

        resp = client.post("/api/sale-orders", json={
            "customer_id": customer.id,
            "items": [
                {"product_id": tofu.id, "quantity": 5},
                {"product_id": soy_milk.id, "quantity": "3"},
            ],
        })
        assert resp.status_code == 201
        assert resp.get_json()["final_amount"] == 16000

        aggregation = client.get("/api/aggregation?category=daily_food").get_json()
        assert aggregation["categories"]["daily_food"]["total_quantity"] == 8

        confirm = client.post("/api/cycle/confirm", json={"actor": "manager"}).get_json()
        assert confirm["confirmed_order_count"] == 1
        [number] = confirm["purchase_order_numbers"]

        sent = client.post("/api/purchase-orders/send-sms", json={"purchase_order_numbers": [number]})
        assert sent.status_code == 200
        assert sent.get_json()["promotions"] == [{"purchase_order_number": number, "promoted": True, "error": None}]
        assert client.get(f"/api/purchase-orders/{number}").get_json()["status"] == STATUS_CONFIRMED

        pending = client.get("/api/inbound/pending").get_json()
        assert [p["purchase_order_number"] for p in pending["items"]] == [number]

        resp = client.post(f"/api/inbound/{number}/complete", json={
            "received_by": "clerk",
            "items": [
                {"product_id": tofu.id, "received_quantity": 5, "inbound_unit_price": 100},
                {"product_id": soy_milk.id, "received_quantity": 3, "inbound_unit_price": 200},
            ],
        })
        assert resp.status_code == 201
        ledger = resp.get_json()
        assert ledger["total_amount"] == 1100

        again = client.post(f"/api/inbound/{number}/complete", json={
            "received_by": "clerk",
            "items": [{"product_id": tofu.id, "received_quantity": 5}],
        })
        assert again.status_code == 409

        assert client.get(f"/api/purchase-orders/{number}").get_json()["status"] == STATUS_COMPLETED
        assert client.get(f"/api/inbound/ledgers/{ledger['purchase_ledger_number']}").status_code == 200

        resp = client.post(f"/api/supplier-accounts/{supplier_a.id}/payments", json={
            "amount": 600,
            "payment_method": "transfer",
            "processed_by": "accounting",
        })
        assert resp.status_code == 201
        assert resp.get_json()["account"]["current_balance"] == 500

        account = client.get(f"/api/supplier-accounts/{supplier_a.id}").get_json()
        assert account["total_purchase_amount"] == 1100
        assert len(account["recent_payments"]) == 1
