"""Tests for POST /webhook/payhip.

Covers:
- Sale events are persisted and round-trip through the lookup endpoint
- Non-sale events are acknowledged without persistence
- Duplicate transaction ids are acknowledged once and stored once
- Concurrent deliveries never lose a record
- Malformed bodies (400) and processing failures (500)
"""

import asyncio
import json

import pytest

from payhook.services.normalizer import normalize_payment

pytestmark = pytest.mark.integration

DAY_FILE = "payments-2026-10-19.jsonl"


def payment_total(api_client) -> int:
    return api_client.get("/api/payments").json()["total"]


# ---------------------------------------------------------------------------
# Sale events
# ---------------------------------------------------------------------------


class TestSaleCompleted:
    def test_scenario_sale_then_lookup(self, api_client):
        payload = {
            "event": "sale_completed",
            "sale": {"amount": "25", "transaction_id": "abc123"},
            "product": {"name": "Ebook"},
        }

        response = api_client.post("/webhook/payhip", json=payload)

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Payment confirmed", "transactionId": "abc123"}

        lookup = api_client.get("/api/payment/abc123")
        assert lookup.status_code == 200
        body = lookup.json()
        assert body["found"] is True
        payment = body["payment"]
        assert payment["amount"] == 25
        assert payment["productName"] == "Ebook"
        assert payment["transactionId"] == "abc123"
        assert payment["status"] == "completed"
        assert payment["currency"] == "USD"
        assert payment["timestamp"] == "2026-10-19T12:00:00.000Z"
        assert payment["rawData"] == payload

    def test_round_trip_matches_normalized_fields(self, api_client, make_sale):
        payload = make_sale(transaction_id="rt-1", amount="12.34")

        api_client.post("/webhook/payhip", json=payload)
        payment = api_client.get("/api/payment/rt-1").json()["payment"]

        expected = normalize_payment(payload).to_log_entry()
        expected.pop("timestamp")
        assert {k: v for k, v in payment.items() if k != "timestamp"} == expected

    @pytest.mark.parametrize("event", ["sale.completed", "SALE_COMPLETED", "Sale-Completed"])
    def test_event_aliases_are_persisted(self, api_client, make_sale, event):
        response = api_client.post("/webhook/payhip", json=make_sale(transaction_id="alias-1", event=event))

        assert response.json()["message"] == "Payment confirmed"
        assert payment_total(api_client) == 1

    def test_form_encoded_sale_is_persisted(self, api_client):
        response = api_client.post(
            "/webhook/payhip",
            content=b"event=sale_completed&sale[amount]=9.50&sale[transaction_id]=form-1&product[name]=Mug",
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )

        assert response.status_code == 200
        payment = api_client.get("/api/payment/form-1").json()["payment"]
        assert payment["amount"] == 9.5
        assert payment["productName"] == "Mug"

    def test_sale_written_to_day_file(self, api_client, make_sale, log_dir):
        api_client.post("/webhook/payhip", json=make_sale(transaction_id="disk-1"))

        lines = (log_dir / DAY_FILE).read_text(encoding="utf-8").splitlines()
        assert len(lines) == 1
        assert json.loads(lines[0])["transactionId"] == "disk-1"

    def test_sale_without_transaction_id_omits_it(self, api_client):
        response = api_client.post("/webhook/payhip", json={"event": "sale_completed", "amount": 3})

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Payment confirmed"}
        assert payment_total(api_client) == 1

    def test_lone_surrogate_in_customer_name_is_persisted(self, api_client, log_dir):
        body = (
            b'{"event": "sale_completed", "sale": {"amount": "5", "transaction_id": "sur-1"},'
            b' "customer": {"name": "\\ud800x"}}'
        )

        response = api_client.post("/webhook/payhip", content=body, headers={"Content-Type": "application/json"})

        assert response.status_code == 200
        assert response.json()["message"] == "Payment confirmed"
        line = (log_dir / DAY_FILE).read_text(encoding="utf-8").strip()
        assert json.loads(line)["customerName"] == "\ud800x"
        payment = api_client.get("/api/payment/sur-1").json()["payment"]
        assert payment["customerName"] == "\ud800x"


# ---------------------------------------------------------------------------
# Non-sale events
# ---------------------------------------------------------------------------


class TestNonSaleEvents:
    def test_scenario_refund_is_acknowledged_not_stored(self, api_client):
        response = api_client.post(
            "/webhook/payhip",
            json={"event": "refund_issued", "sale": {"transaction_id": "abc123", "amount": "25"}},
        )

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Event received but not a sale"}
        assert payment_total(api_client) == 0

    @pytest.mark.parametrize(
        "payload",
        [{}, {"event": None}, {"event": "subscription.created"}, {"event": 12}, [1, 2, 3], "sale_completed"],
    )
    def test_unrecognized_payloads_do_not_change_total(self, api_client, payload):
        before = payment_total(api_client)

        response = api_client.post("/webhook/payhip", json=payload)

        assert response.status_code == 200
        assert response.json()["message"] == "Event received but not a sale"
        assert payment_total(api_client) == before


# ---------------------------------------------------------------------------
# Idempotency
# ---------------------------------------------------------------------------


class TestDuplicateDelivery:
    def test_same_transaction_twice_records_once(self, api_client, make_sale):
        first = api_client.post("/webhook/payhip", json=make_sale(transaction_id="dup-1"))
        second = api_client.post("/webhook/payhip", json=make_sale(transaction_id="dup-1"))

        assert first.json()["message"] == "Payment confirmed"
        assert second.status_code == 200
        assert second.json() == {
            "success": True,
            "message": "Payment already recorded",
            "transactionId": "dup-1",
            "duplicate": True,
        }
        assert payment_total(api_client) == 1

    def test_numeric_legacy_id_is_not_recorded_again(self, api_client, log_dir, make_sale):
        log_dir.mkdir(parents=True, exist_ok=True)
        (log_dir / "payments-2026-10-17.json").write_text(
            '[{"timestamp": "2026-10-17T09:00:00.000Z", "transactionId": 777, "amount": "4"}]', encoding="utf-8"
        )

        response = api_client.post("/webhook/payhip", json=make_sale(transaction_id=777))

        assert response.json()["message"] == "Payment already recorded"
        assert response.json()["transactionId"] == "777"
        assert payment_total(api_client) == 1


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_concurrent_webhooks_lose_no_records(async_client, make_sale, log_dir):
    """N concurrent deliveries for N distinct ids -> exactly N records in the day file."""
    n = 25

    responses = await asyncio.gather(
        *(async_client.post("/webhook/payhip", json=make_sale(transaction_id=f"con-{i}")) for i in range(n))
    )

    assert all(r.status_code == 200 for r in responses)
    lines = (log_dir / DAY_FILE).read_text(encoding="utf-8").splitlines()
    assert len(lines) == n
    listing = (await async_client.get("/api/payments")).json()
    assert listing["total"] == n
    stats = (await async_client.get("/api/payment-stats")).json()
    assert stats["totalTransactions"] == n


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


class TestFailures:
    def test_malformed_json_is_client_error(self, api_client):
        response = api_client.post(
            "/webhook/payhip",
            content=b'{"event": "sale_completed",',
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        body = response.json()
        assert body["detail"] == "Invalid JSON body"
        assert "debug_id" in body
        assert payment_total(api_client) == 0

    def test_store_failure_returns_500_and_persists_nothing(self, api_client, make_sale, monkeypatch):
        def _fail(path, line):
            raise OSError(28, "No space left on device")

        monkeypatch.setattr("payhook.store.log_store._append_line", _fail)

        response = api_client.post("/webhook/payhip", json=make_sale(transaction_id="full-disk"))

        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert "No space left on device" in body["error"]

        monkeypatch.undo()
        assert api_client.get("/api/payment/full-disk").status_code == 404

    def test_normalizer_crash_returns_500(self, api_client, make_sale, monkeypatch):
        def _boom(payload):
            raise KeyError("sale")

        monkeypatch.setattr("payhook.api.routes.webhooks.normalize_payment", _boom)

        response = api_client.post("/webhook/payhip", json=make_sale())

        assert response.status_code == 500
        assert response.json()["success"] is False
        assert payment_total(api_client) == 0
