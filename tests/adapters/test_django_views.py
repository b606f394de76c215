"""
Millstone — Django Adapter Tests
==================================
JSON views, routing and status codes through the Django test client.
"""

import json

import pytest

from adapters.django_api.wiring import (
    SettingsLedgerConfigStore,
    build_dependencies,
    reset_dependencies,
)


@pytest.fixture(autouse=True)
def fresh_ledger():
    reset_dependencies()
    yield
    reset_dependencies()


def _post(client, path, body):
    return client.post(f"/v1/ledger/{path}", data=json.dumps(body), content_type="application/json")


class TestWiring:
    def test_config_read_from_settings(self, settings):
        settings.MILLSTONE_LEDGER = {"cost_places": 6, "currency": "USD"}
        config = SettingsLedgerConfigStore().get_ledger_config()
        assert config.cost_places == 6
        assert config.currency == "USD"

    def test_dependencies_are_shared(self):
        assert build_dependencies() is build_dependencies()
        assert len(build_dependencies().ledger.engine.items) > 0


class TestWriteViews:
    def test_receipt_created(self, client):
        response = _post(client, "receipts", {
            "supplier_id": "sup-rajasthan",
            "lines": [{"item_id": "raw-chili", "quantity": "50", "unit_price": "280"}],
        })
        assert response.status_code == 200
        body = response.json()
        assert body["data"]["reference_id"] == "GRN-0001"
        assert body["meta"]["ledger_version"] == 1

    def test_rejection_status(self, client):
        response = _post(client, "dispatches", {
            "customer_id": "cust-metro",
            "lines": [{"item_id": "fg-chili-50", "quantity": "5", "unit_price": "40"}],
        })
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "INSUFFICIENT_STOCK"

    def test_invalid_json(self, client):
        response = client.post("/v1/ledger/receipts", data="{not json", content_type="application/json")
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_REQUEST"

    def test_non_object_body(self, client):
        response = client.post("/v1/ledger/batches", data="[1, 2]", content_type="application/json")
        assert response.status_code == 400

    def test_get_on_write_endpoint(self, client):
        response = client.get("/v1/ledger/adjustments")
        assert response.status_code == 405
        assert response.json()["error"]["code"] == "METHOD_NOT_ALLOWED"

    def test_batch_lifecycle(self, client):
        _post(client, "receipts", {
            "supplier_id": "sup-rajasthan",
            "lines": [{"item_id": "raw-turmeric", "quantity": "120", "unit_price": "120"}],
        })
        planned = _post(client, "batches", {"recipe_id": "recipe-turmeric"}).json()
        batch_id = planned["data"]["reference_id"]
        issued = _post(client, "batches/issue", {
            "batch_id": batch_id, "actual_quantities": {"raw-turmeric": "100"},
        })
        assert issued.json()["data"]["record"]["status"] == "IN_PROGRESS"
        completed = _post(client, "batches/complete", {
            "batch_id": batch_id, "actual_output": "93", "wastage": "6", "expected_version": 3,
        })
        assert completed.status_code == 200
        assert completed.json()["data"]["record"]["yield_percent"] == "93.00"


class TestReadViews:
    def test_stock_query(self, client):
        _post(client, "receipts", {
            "supplier_id": "sup-rajasthan",
            "lines": [{"item_id": "raw-chili", "quantity": "50", "unit_price": "280"}],
        })
        response = client.get("/v1/ledger/stock", {"item_id": "raw-chili"})
        assert response.status_code == 200
        assert response.json()["data"]["quantity"] == "50"

    def test_stock_query_bad_partition(self, client):
        response = client.get("/v1/ledger/stock", {"partition": "CONSIGNMENT"})
        assert response.status_code == 400

    def test_audit_trail(self, client):
        _post(client, "receipts", {
            "supplier_id": "sup-rajasthan",
            "lines": [{"item_id": "raw-chili", "quantity": "50", "unit_price": "280"}],
        })
        response = client.get("/v1/ledger/audit-trail", {"item_id": "raw-chili"})
        assert [row["kind"] for row in response.json()["data"]] == ["RECEIVE"]

    def test_valuation_report(self, client):
        response = client.get("/v1/ledger/reports/valuation")
        assert response.status_code == 200
        assert response.json()["data"]["total_value"] == "0.00"

    def test_packaging_profiles(self, client):
        response = client.get("/v1/ledger/packaging-profiles")
        assert response.status_code == 200
        assert {row["pack_mode"] for row in response.json()["data"]} == {"POUCH_100G", "BOXED_20"}

    def test_post_on_read_endpoint(self, client):
        response = client.post("/v1/ledger/stock")
        assert response.status_code == 405
