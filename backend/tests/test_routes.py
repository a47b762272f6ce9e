"""
HTTP surface: status codes and payload shapes for the ledger API.
"""

import pytest

from backoffice.extensions import db
from backoffice.models import Item


class TestSystem:
    def test_health_degraded_without_reference_data(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "degraded"
        assert body["checks"]["database"]["status"] == "healthy"

    def test_health_healthy_after_seed(self, client, expense_categories):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "healthy"


class TestAuthHeader:
    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/inventory/items"),
            ("GET", "/api/inventory/ledger"),
            ("POST", "/api/sales/"),
            ("GET", "/api/reports/balance-sheet"),
        ],
    )
    def test_requires_user(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_rejects_non_numeric_user(self, client, db_session):
        resp = client.get("/api/inventory/items", headers={"X-User-Id": "alice"})
        assert resp.status_code == 401


class TestItemRoutes:
    def test_create_and_fetch_item(self, client, headers, category):
        resp = client.post(
            "/api/inventory/items",
            json={
                "name": "Sparkling Water",
                "category_id": category.id,
                "unit": "bottle",
                "cost_price_cents": 80,
                "current_stock": 24,
            },
            headers=headers,
        )
        assert resp.status_code == 201
        item = resp.get_json()["item"]
        assert item["sku"] == "BEV-001"
        assert item["current_stock"] == 24

        resp = client.get(f"/api/inventory/items/{item['id']}", headers=headers)
        assert resp.status_code == 200
        assert resp.get_json()["item"]["name"] == "Sparkling Water"

    def test_create_item_validation(self, client, headers, category):
        resp = client.post(
            "/api/inventory/items",
            json={"name": "Bad", "category_id": category.id, "unit": "pcs", "cost_price_cents": "9.99"},
            headers=headers,
        )
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "validation_error"

    def test_unknown_item(self, client, headers, db_session):
        assert client.get("/api/inventory/items/999", headers=headers).status_code == 404

    def test_adjust_and_waste(self, client, headers, item):
        resp = client.post(
            f"/api/inventory/items/{item.id}/adjust",
            json={"delta": 3, "reason": "Recount"},
            headers=headers,
        )
        assert resp.status_code == 200
        assert resp.get_json()["new_stock"] == 8

        resp = client.post(
            f"/api/inventory/items/{item.id}/waste",
            json={"quantity": 20, "reason": "Flood"},
            headers=headers,
        )
        assert resp.status_code == 409
        assert resp.get_json()["error"] == "insufficient_stock"

    def test_ledger_listing(self, client, headers, item):
        client.post(
            f"/api/inventory/items/{item.id}/waste",
            json={"quantity": 1, "reason": "Dropped"},
            headers=headers,
        )

        resp = client.get(f"/api/inventory/ledger?item_id={item.id}&limit=1", headers=headers)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["count"] == 1
        assert body["total"] == 2
        assert body["items"][0]["type"] == "WASTE"
        assert body["items"][0]["user_id"] == 1

        resp = client.get("/api/inventory/ledger?type=STOCK_IN,LOST", headers=headers)
        assert resp.status_code == 400

    def test_receive_rejects_non_string_date(self, client, headers, item):
        resp = client.post(
            f"/api/inventory/items/{item.id}/receive",
            json={"quantity": 2, "unit_cost_cents": 500, "received_on": 20260101},
            headers=headers,
        )
        assert resp.status_code == 400
        assert db.session.get(Item, item.id).current_stock == 5

    def test_consistency_route(self, client, headers, item):
        resp = client.get(f"/api/inventory/items/{item.id}/consistency", headers=headers)
        assert resp.status_code == 200
        assert resp.get_json()["consistent"] is True


class TestSaleRoutes:
    def test_sale_and_refund(self, client, headers, item):
        resp = client.post(
            "/api/sales/",
            json={"items": [{"item_id": item.id, "quantity": 3}], "payment_method": "CASH"},
            headers=headers,
        )
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["success"] is True
        assert body["final_amount_cents"] == 3900
        assert body["gross_profit_cents"] == 900
        sale_id = body["sale_id"]

        resp = client.get(f"/api/sales/{sale_id}", headers=headers)
        assert resp.status_code == 200
        assert resp.get_json()["entries"][0]["reference"] == str(sale_id)

        resp = client.post(f"/api/sales/{sale_id}/refund", json={"reason": "Wrong order"}, headers=headers)
        assert resp.status_code == 200

        resp = client.post(f"/api/sales/{sale_id}/refund", json={}, headers=headers)
        assert resp.status_code == 409
        assert resp.get_json()["error"] == "conflict"
        assert db.session.get(Item, item.id).current_stock == 5

    def test_insufficient_stock_details(self, client, headers, item):
        resp = client.post(
            "/api/sales/",
            json={"items": [{"item_id": item.id, "quantity": 10}], "payment_method": "CASH"},
            headers=headers,
        )
        assert resp.status_code == 409
        body = resp.get_json()
        assert body["error"] == "insufficient_stock"
        assert body["details"]["available"] == 5
        assert body["details"]["requested"] == 10

    def test_future_sale_date(self, client, headers, item):
        resp = client.post(
            "/api/sales/",
            json={
                "items": [{"item_id": item.id, "quantity": 1}],
                "payment_method": "CASH",
                "sale_date": "2999-01-01T00:00:00Z",
            },
            headers=headers,
        )
        assert resp.status_code == 400

    def test_non_string_sale_date(self, client, headers, item):
        resp = client.post(
            "/api/sales/",
            json={
                "items": [{"item_id": item.id, "quantity": 1}],
                "payment_method": "CASH",
                "sale_date": 123,
            },
            headers=headers,
        )
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "validation_error"
        assert db.session.get(Item, item.id).current_stock == 5

    def test_quote(self, client, headers, item):
        resp = client.post(
            "/api/sales/quote",
            json={"items": [{"item_id": item.id, "quantity": 2}]},
            headers=headers,
        )
        assert resp.status_code == 200
        assert resp.get_json()["total_amount_cents"] == 2600

    def test_refund_unknown_sale(self, client, headers, db_session):
        assert client.post("/api/sales/999/refund", json={}, headers=headers).status_code == 404


class TestReportRoutes:
    def test_balance_sheet(self, client, headers, item):
        resp = client.get("/api/reports/balance-sheet", headers=headers)
        assert resp.status_code == 200
        sheet = resp.get_json()["balance_sheet"]
        assert sheet["assets"]["current_assets"]["inventory_cents"] == 5000
        assert "balance_check_cents" in sheet

    def test_bad_period(self, client, headers, db_session):
        resp = client.get("/api/reports/profit?period=decade", headers=headers)
        assert resp.status_code == 400

    def test_bad_date(self, client, headers, db_session):
        resp = client.get("/api/reports/daily-sales?date=yesterday", headers=headers)
        assert resp.status_code == 400

    def test_daily_sales(self, client, headers, item):
        client.post(
            "/api/sales/",
            json={"items": [{"item_id": item.id, "quantity": 1}], "payment_method": "CARD"},
            headers=headers,
        )
        resp = client.get("/api/reports/daily-sales", headers=headers)
        assert resp.status_code == 200
        assert resp.get_json()["data"]["totals"]["revenue_cents"] == 1300
