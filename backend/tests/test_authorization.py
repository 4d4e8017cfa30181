"""
Authorization tests.

Verifies:
- Unauthenticated requests return 401
- Each role is denied capabilities outside its set (403)
- Allowed roles get through
- The role is re-read from the database on every request
"""

import pytest

from conftest import auth_headers, get_auth_token
from inventory_platform.extensions import db


# =============================================================================
# UNAUTHENTICATED ACCESS - 401
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/auth/me"),
            ("GET", "/api/products"),
            ("POST", "/api/products"),
            ("GET", "/api/products/1"),
            ("PUT", "/api/products/1"),
            ("DELETE", "/api/products/1"),
            ("GET", "/api/suppliers"),
            ("POST", "/api/suppliers"),
            ("GET", "/api/users"),
            ("POST", "/api/users"),
            ("GET", "/api/sales"),
            ("POST", "/api/sales"),
            ("GET", "/api/sales/1"),
            ("GET", "/api/reports/low-stock"),
            ("GET", "/api/reports/sales-summary"),
            ("GET", "/api/reports/sales-by-period"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"
        assert resp.json["error"] == "Authentication required"

    def test_garbage_token_rejected(self, client, db_session):
        resp = client.get("/api/products", headers=auth_headers("not-a-real-token"))
        assert resp.status_code == 401
        assert resp.json["error"] == "Invalid or expired token"

    def test_non_bearer_scheme_rejected(self, client, db_session):
        resp = client.get("/api/products", headers={"Authorization": "Basic abc"})
        assert resp.status_code == 401


# =============================================================================
# ROLE GATING - 403
# =============================================================================


class TestInventoryRole:

    def test_cannot_record_sale(self, client, inventory_headers, product_factory):
        p = product_factory()
        resp = client.post(
            "/api/sales",
            json={"items": [{"product_id": p.id, "quantity": 1}]},
            headers=inventory_headers,
        )
        assert resp.status_code == 403
        assert resp.json["required_permission"] == "RECORD_SALE"

    def test_cannot_view_sales(self, client, inventory_headers):
        assert client.get("/api/sales", headers=inventory_headers).status_code == 403

    def test_cannot_view_sales_reports(self, client, inventory_headers):
        resp = client.get(
            "/api/reports/sales-summary?start_date=2026-01-01&end_date=2026-01-31",
            headers=inventory_headers,
        )
        assert resp.status_code == 403

    def test_cannot_manage_users(self, client, inventory_headers):
        assert client.get("/api/users", headers=inventory_headers).status_code == 403

    def test_cannot_delete_products(self, client, inventory_headers, product_factory):
        p = product_factory()
        assert client.delete(f"/api/products/{p.id}", headers=inventory_headers).status_code == 403

    def test_can_manage_products_and_view_low_stock(self, client, inventory_headers, product_factory):
        p = product_factory()
        resp = client.put(f"/api/products/{p.id}", json={"stock_quantity": 3}, headers=inventory_headers)
        assert resp.status_code == 200
        assert client.get("/api/reports/low-stock", headers=inventory_headers).status_code == 200


class TestSalesRole:

    def test_cannot_create_products(self, client, sales_headers, supplier):
        resp = client.post(
            "/api/products",
            json={"sku": "X-1", "name": "X", "price": "1.00", "supplier_id": supplier.id},
            headers=sales_headers,
        )
        assert resp.status_code == 403
        assert resp.json["error"] == "Permission denied"

    def test_cannot_manage_suppliers(self, client, sales_headers, db_session):
        resp = client.post(
            "/api/suppliers",
            json={"name": "Evil Supplier", "contact_name": "Nobody"},
            headers=sales_headers,
        )
        assert resp.status_code == 403

    def test_cannot_view_low_stock(self, client, sales_headers):
        assert client.get("/api/reports/low-stock", headers=sales_headers).status_code == 403

    def test_can_view_products_and_suppliers(self, client, sales_headers, product_factory):
        product_factory()
        assert client.get("/api/products", headers=sales_headers).status_code == 200
        assert client.get("/api/suppliers", headers=sales_headers).status_code == 200


class TestAdminRole:

    @pytest.mark.parametrize(
        "path",
        [
            "/api/products",
            "/api/suppliers",
            "/api/users",
            "/api/sales",
            "/api/reports/low-stock",
            "/api/reports/sales-by-period",
        ],
    )
    def test_admin_reads_everything(self, client, admin_headers, path):
        assert client.get(path, headers=admin_headers).status_code == 200


# =============================================================================
# ROLE AND ACCOUNT CHANGES TAKE EFFECT IMMEDIATELY
# =============================================================================


class TestLiveRoleChecks:

    def test_role_change_applies_to_existing_token(self, client, inventory_user, product_factory):
        token = get_auth_token(client, inventory_user.username)
        p = product_factory()
        body = {"items": [{"product_id": p.id, "quantity": 1}]}

        assert client.post("/api/sales", json=body, headers=auth_headers(token)).status_code == 403

        inventory_user.role = "Sales"
        db.session.commit()

        assert client.post("/api/sales", json=body, headers=auth_headers(token)).status_code == 201

    def test_deactivated_user_token_rejected(self, client, sales_user):
        token = get_auth_token(client, sales_user.username)
        assert client.get("/api/products", headers=auth_headers(token)).status_code == 200

        sales_user.is_active = False
        db.session.commit()

        resp = client.get("/api/products", headers=auth_headers(token))
        assert resp.status_code == 401
