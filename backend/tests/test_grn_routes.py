"""
Tests for the GRN and inventory report HTTP APIs.

Covers authentication, role and tenant enforcement, and the mapping of
service errors to status codes.
"""

import pytest

from conftest import receive
from shopstock.models import ReceiptHeader, OutboxEvent
from shopstock.services import session_service


def _grn_body(lines=None, **overrides):
    body = {
        "company_id": "C-A",
        "shop_id": "S-A1",
        "supplier_id": "SUP-A",
        "lines": lines or [
            {"category_id": "CAT-A", "product_id": "P1", "unit_cost_cents": 1000, "quantity": 5},
        ],
    }
    body.update(overrides)
    return body


class TestAuthentication:
    def test_missing_token(self, client, db_session):
        response = client.get("/api/grns")
        assert response.status_code == 401

    def test_unknown_token(self, client, db_session, users):
        response = client.get("/api/grns", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    def test_revoked_token(self, client, db_session, users):
        session, token = session_service.issue_session("U-ADMIN")
        session_service.revoke_session(token)
        response = client.get("/api/grns", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401


class TestCreateGrn:
    def test_create(self, client, products, stock_headers):
        response = client.post("/api/grns", json=_grn_body(), headers=stock_headers)

        assert response.status_code == 201
        grn = response.get_json()["grn"]
        assert grn["transaction_code"] == "GRN-1"
        assert grn["transaction_status"] == "Pending"
        assert grn["total_cost_cents"] == 5000
        assert grn["created_by"] == "U-STOCK"

    def test_events_dispatched_after_commit(self, client, db_session, products, admin_headers):
        client.post("/api/grns", json=_grn_body(), headers=admin_headers)

        statuses = {e.status for e in db_session.query(OutboxEvent).all()}
        assert statuses == {"DISPATCHED"}

    def test_scope_defaults_to_session(self, client, products, admin_headers):
        body = _grn_body()
        del body["company_id"]
        del body["shop_id"]
        response = client.post("/api/grns", json=body, headers=admin_headers)
        assert response.status_code == 201
        assert response.get_json()["grn"]["shop_id"] == "S-A1"

    def test_cashier_cannot_create(self, client, products, cashier_headers):
        response = client.post("/api/grns", json=_grn_body(), headers=cashier_headers)
        assert response.status_code == 403
        assert "stockManager" in response.get_json()["required_roles"]

    def test_other_company_rejected(self, client, db_session, products, admin_b_headers):
        response = client.post("/api/grns", json=_grn_body(), headers=admin_b_headers)
        assert response.status_code == 403
        assert db_session.query(ReceiptHeader).count() == 0

    def test_super_admin_can_create_anywhere(self, client, products, super_headers):
        response = client.post("/api/grns", json=_grn_body(), headers=super_headers)
        assert response.status_code == 201

    def test_unknown_product(self, client, products, admin_headers):
        body = _grn_body([{"category_id": "CAT-A", "product_id": "NOPE", "unit_cost_cents": 1, "quantity": 1}])
        response = client.post("/api/grns", json=body, headers=admin_headers)
        assert response.status_code == 404
        assert response.get_json()["product_id"] == "NOPE"

    def test_ineligible_product(self, client, products, admin_headers):
        body = _grn_body([{"category_id": "CAT-A", "product_id": "FG", "unit_cost_cents": 1, "quantity": 1}])
        response = client.post("/api/grns", json=body, headers=admin_headers)
        assert response.status_code == 400
        assert response.get_json()["product_id"] == "FG"

    def test_unknown_supplier(self, client, products, admin_headers):
        response = client.post("/api/grns", json=_grn_body(supplier_id="SUP-B"), headers=admin_headers)
        assert response.status_code == 404

    @pytest.mark.parametrize("lines", [
        [],
        [{"product_id": "P1", "unit_cost_cents": 100, "quantity": 0}],
        [{"product_id": "P1", "unit_cost_cents": -1, "quantity": 1}],
        [{"product_id": "P1", "unit_cost_cents": 100, "quantity": "5"}],
    ])
    def test_invalid_lines(self, client, products, admin_headers, lines):
        body = _grn_body()
        body["lines"] = lines
        response = client.post("/api/grns", json=body, headers=admin_headers)
        assert response.status_code == 400


class TestGrnLifecycleRoutes:
    def test_cancel(self, client, products, admin_headers):
        receive([("P1", 5, 1000)])

        response = client.post("/api/grns/cancel/GRN-1/C-A/S-A1", headers=admin_headers)

        assert response.status_code == 200
        assert response.get_json()["grn"]["transaction_status"] == "Cancelled"

    def test_cancel_twice_conflicts(self, client, products, admin_headers):
        receive([("P1", 5, 1000)])
        client.post("/api/grns/cancel/GRN-1/C-A/S-A1", headers=admin_headers)

        response = client.post("/api/grns/cancel/GRN-1/C-A/S-A1", headers=admin_headers)
        assert response.status_code == 409
        assert response.get_json()["transaction_code"] == "GRN-1"

    def test_cancel_after_consumption_conflicts(self, client, products, admin_headers):
        from shopstock.services import movement_service

        receive([("P1", 5, 1000)])
        movement_service.record_movement(
            company_id="C-A", shop_id="S-A1", transaction_type="Sales", direction="Out",
            created_by="U-ADMIN", components=[{"product_id": "P1", "quantity": 3}],
        )

        response = client.post("/api/grns/cancel/GRN-1/C-A/S-A1", headers=admin_headers)

        assert response.status_code == 409
        body = response.get_json()
        assert body["available"] == 2
        assert body["requested"] == 5

    def test_cancel_unknown(self, client, products, admin_headers):
        response = client.post("/api/grns/cancel/GRN-99/C-A/S-A1", headers=admin_headers)
        assert response.status_code == 404

    def test_cancel_in_other_company_forbidden(self, client, products, admin_b_headers):
        receive([("P1", 5, 1000)])
        response = client.post("/api/grns/cancel/GRN-1/C-A/S-A1", headers=admin_b_headers)
        assert response.status_code == 403

    def test_settle_then_update_conflicts(self, client, products, admin_headers):
        receive([("P1", 5, 1000)])
        assert client.post("/api/grns/settle/GRN-1/C-A/S-A1", headers=admin_headers).status_code == 200

        response = client.put(
            "/api/grns/update/GRN-1/C-A/S-A1",
            json={"supplier_id": "SUP-A", "lines": [{"product_id": "P1", "unit_cost_cents": 1, "quantity": 1}]},
            headers=admin_headers,
        )
        assert response.status_code == 409

    def test_update(self, client, products, stock_headers):
        receive([("P1", 5, 1000)])

        response = client.put(
            "/api/grns/update/GRN-1/C-A/S-A1",
            json={
                "supplier_id": "SUP-A2",
                "lines": [{"category_id": "CAT-A", "product_id": "P2", "unit_cost_cents": 250, "quantity": 4}],
            },
            headers=stock_headers,
        )

        assert response.status_code == 200
        grn = response.get_json()["grn"]
        assert grn["supplier_id"] == "SUP-A2"
        assert grn["total_cost_cents"] == 1000


class TestGrnQueries:
    def test_list_is_tenant_scoped(self, client, products, product_b, admin_headers, admin_b_headers, super_headers):
        receive([("P1", 5, 1000)])

        assert len(client.get("/api/grns", headers=admin_headers).get_json()["grns"]) == 1
        assert client.get("/api/grns", headers=admin_b_headers).get_json()["grns"] == []
        assert len(client.get("/api/grns", headers=super_headers).get_json()["grns"]) == 1

    def test_company_listing_forbidden_for_other_tenant(self, client, products, admin_b_headers):
        response = client.get("/api/grns/C-A", headers=admin_b_headers)
        assert response.status_code == 403

    def test_shop_and_supplier_listings(self, client, products, admin_headers):
        receive([("P1", 5, 1000)])
        receive([("P1", 5, 1000)], supplier_id="SUP-A2")

        shop = client.get("/api/grns/shop/grn-details/C-A/S-A1", headers=admin_headers).get_json()["grns"]
        assert [g["transaction_code"] for g in shop] == ["GRN-2", "GRN-1"]

        supplier = client.get(
            "/api/grns/supplier/grn-details/C-A/S-A1/SUP-A2", headers=admin_headers
        ).get_json()["grns"]
        assert [g["transaction_code"] for g in supplier] == ["GRN-2"]

    def test_get_with_lines(self, client, products, cashier_headers):
        receive([("P1", 5, 1000), ("P2", 2, 300)])

        response = client.get("/api/grns/C-A/S-A1/GRN-1", headers=cashier_headers)

        assert response.status_code == 200
        body = response.get_json()
        assert body["grn"]["transaction_code"] == "GRN-1"
        assert [t["line_code"] for t in body["transactions"]] == ["RMT-1", "RMT-2"]

    def test_get_details(self, client, products, admin_headers):
        receive([("P1", 5, 1000)])

        body = client.get("/api/grns/grn-details/C-A/S-A1/GRN-1/transactions", headers=admin_headers).get_json()

        assert body["company"]["name"] == "Acme Bakery"
        assert body["supplier"]["supplier_id"] == "SUP-A"
        assert len(body["transactions"]) == 1

    def test_get_unknown(self, client, products, admin_headers):
        response = client.get("/api/grns/C-A/S-A1/GRN-42", headers=admin_headers)
        assert response.status_code == 404


class TestInventoryReportRoutes:
    def test_report(self, client, products, stock_headers):
        receive([("P1", 5, 1000)])

        response = client.get(
            "/api/inventoryReports/report?startDate=2020-01-01&endDate=2099-12-31",
            headers=stock_headers,
        )

        assert response.status_code == 200
        body = response.get_json()
        assert body["timeRange"] == {"startDate": "2020-01-01", "endDate": "2099-12-31"}
        assert body["data"][0]["product_id"] == "P1"
        assert body["data"][0]["current_stock"] == 5

    def test_report_bad_dates(self, client, products, stock_headers):
        response = client.get("/api/inventoryReports/report?startDate=bad&endDate=2024-01-01", headers=stock_headers)
        assert response.status_code == 400

    def test_report_reversed_range(self, client, products, stock_headers):
        response = client.get(
            "/api/inventoryReports/report?startDate=2024-02-01&endDate=2024-01-01", headers=stock_headers
        )
        assert response.status_code == 400

    def test_weekly_time_range(self, client, products, admin_headers):
        response = client.get("/api/inventoryReports/weekly-report?date=2024-05-15", headers=admin_headers)
        assert response.status_code == 200
        assert response.get_json()["timeRange"] == {"startDate": "2024-05-12", "endDate": "2024-05-18"}

    def test_monthly_invalid_month(self, client, products, admin_headers):
        response = client.get("/api/inventoryReports/monthly-report?year=2024&month=13", headers=admin_headers)
        assert response.status_code == 400

    def test_daily_missing_date(self, client, products, admin_headers):
        response = client.get("/api/inventoryReports/daily-report", headers=admin_headers)
        assert response.status_code == 400

    def test_low_stock(self, client, products, admin_headers):
        receive([("P1", 5, 100), ("P2", 20, 100)])

        response = client.get("/api/inventoryReports/low-stock", headers=admin_headers)

        assert response.status_code == 200
        assert [r["product_id"] for r in response.get_json()["data"]] == ["P1"]

    def test_reports_are_tenant_scoped(self, client, products, admin_b_headers):
        receive([("P1", 5, 100)])
        response = client.get("/api/inventoryReports/low-stock", headers=admin_b_headers)
        assert response.get_json()["data"] == []

    def test_super_admin_needs_scope(self, client, products, super_headers):
        response = client.get("/api/inventoryReports/low-stock", headers=super_headers)
        assert response.status_code == 400

        response = client.get("/api/inventoryReports/low-stock?companyId=C-A&shopId=S-A1", headers=super_headers)
        assert response.status_code == 200


class TestInventoryMovementReportRoute:
    def test_report(self, client, products, stock_headers):
        receive([("P1", 5, 1000)])

        response = client.get("/api/reports/inventoryReport", headers=stock_headers)

        assert response.status_code == 200
        body = response.get_json()
        assert body["message"] == "Inventory movement report generated successfully"
        assert body["fromDate"].endswith("Z")
        assert body["toDate"].endswith("Z")
        row = body["reportData"][0]
        assert row["product_id"] == "P1"
        assert row["purchases_during_period"] == 5
        assert row["opening_inventory"] == 0

    @pytest.mark.parametrize("past_date", ["whenever", "2999-01-01"])
    def test_bad_past_date(self, client, products, stock_headers, past_date):
        receive([("P1", 5, 1000)])
        response = client.get(f"/api/reports/inventoryReport?pastDate={past_date}", headers=stock_headers)
        assert response.status_code == 400

    def test_no_inventory(self, client, products, admin_b_headers):
        receive([("P1", 5, 1000)])
        response = client.get("/api/reports/inventoryReport", headers=admin_b_headers)
        assert response.status_code == 404
        assert response.get_json()["error"] == "No inventory items found."

    def test_requires_auth(self, client, db_session):
        assert client.get("/api/reports/inventoryReport").status_code == 401


class TestHealth:
    def test_health(self, client, db_session):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.get_json()["checks"]["database"]["status"] == "healthy"
