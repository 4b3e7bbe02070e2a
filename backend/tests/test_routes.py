"""
HTTP surface tests.

Verifies:
- Unauthenticated requests return 401
- Sellers are denied admin operations (403) and unassigned projects
- Service errors map to the shared error envelope and status codes
"""

import pytest

from eventstock.models import Transaction
from conftest import PASSWORD, auth_headers


# =============================================================================
# AUTHENTICATION
# =============================================================================


class TestAuthentication:
    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/projects"),
            ("POST", "/api/transactions"),
            ("POST", "/api/checkout"),
            ("GET", "/api/dashboard"),
            ("GET", "/api/users"),
            ("GET", "/api/auth/me"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401
        assert resp.json["error"] == "UNAUTHORIZED"

    def test_login_me_logout(self, client, seller):
        resp = client.post("/api/auth/login", json={"email": seller.email, "password": PASSWORD})
        assert resp.status_code == 200
        headers = auth_headers(resp.json["token"])

        me = client.get("/api/auth/me", headers=headers)
        assert me.json["role"] == "seller"

        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_wrong_password(self, client, seller):
        resp = client.post("/api/auth/login", json={"email": seller.email, "password": "nope-nope"})
        assert resp.status_code == 401


# =============================================================================
# TRANSACTIONS
# =============================================================================


class TestTransactionRoutes:
    def test_record_sale(self, client, product, seller_headers):
        resp = client.post("/api/transactions", headers=seller_headers, json={
            "product_id": product.id,
            "type": "SALE",
            "payment_method": "CASH",
            "quantity": 4,
            "amount_cents": 4000,
        })

        assert resp.status_code == 201
        assert resp.json["success"] is True
        assert resp.json["transaction"]["quantity"] == 4
        assert product.stock == 6

    def test_insufficient_stock_is_409(self, client, product, seller_headers):
        resp = client.post("/api/transactions", headers=seller_headers, json={
            "product_id": product.id, "type": "GIFT", "quantity": 11,
        })

        assert resp.status_code == 409
        assert resp.json == {
            "success": False,
            "error": "INSUFFICIENT_STOCK",
            "message": "Insufficient stock",
            "details": {"pool": "DIRECT", "product_id": product.id, "requested_quantity": 11, "on_hand": 10},
        }

    def test_unknown_field_is_400(self, client, product, seller_headers):
        resp = client.post("/api/transactions", headers=seller_headers, json={
            "product_id": product.id, "type": "GIFT", "quantity": 1, "stock": 99,
        })
        assert resp.status_code == 400
        assert resp.json["error"] == "VALIDATION_FAILED"
        assert "stock" in resp.json["details"]["field_errors"]

    def test_outsider_is_403(self, client, product, outsider_headers):
        resp = client.post("/api/transactions", headers=outsider_headers, json={
            "product_id": product.id, "type": "GIFT", "quantity": 1,
        })
        assert resp.status_code == 403
        assert product.stock == 10

    def test_missing_product_is_404_for_admin_only(self, client, project, admin_headers, seller_headers):
        payload = {"product_id": 9999, "type": "GIFT", "quantity": 1}
        assert client.post("/api/transactions", headers=admin_headers, json=payload).status_code == 404
        assert client.post("/api/transactions", headers=seller_headers, json=payload).status_code == 403

    def test_edit_and_delete(self, client, db_session, product, seller_headers):
        created = client.post("/api/transactions", headers=seller_headers, json={
            "product_id": product.id, "type": "SALE", "payment_method": "CARD", "quantity": 2, "amount_cents": 2000,
        }).json["transaction"]

        resp = client.patch(f"/api/transactions/{created['id']}", headers=seller_headers, json={"type": "GIFT"})
        assert resp.status_code == 200
        assert resp.json["transaction"]["amount_cents"] == 0
        assert resp.json["transaction"]["payment_method"] is None

        resp = client.delete(f"/api/transactions/{created['id']}", headers=seller_headers)
        assert resp.status_code == 200
        assert db_session.query(Transaction).count() == 0
        assert product.stock == 10

    def test_history_with_search(self, client, product, seller_headers):
        client.post("/api/transactions", headers=seller_headers, json={
            "product_id": product.id, "type": "GIFT", "quantity": 1, "comment": "photographe",
        })

        resp = client.get(f"/api/projects/{product.project_id}/transactions?q=photo", headers=seller_headers)
        assert resp.status_code == 200
        assert [t["product_name"] for t in resp.json["transactions"]] == ["Mug"]

    def test_clear_history_is_admin_only(self, client, product, seller_headers, admin_headers):
        path = f"/api/projects/{product.project_id}/transactions"
        assert client.delete(path, headers=seller_headers).status_code == 403
        resp = client.delete(path, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["deleted"] == 0


# =============================================================================
# CHECKOUT
# =============================================================================


class TestCheckoutRoute:
    def test_checkout(self, client, product, seller_headers):
        resp = client.post("/api/checkout", headers=seller_headers, json={
            "lines": [
                {"product_id": product.id, "quantity": 1, "unit_price_cents": 1000},
                {"product_id": product.id, "quantity": 2, "unit_price_cents": 900},
            ],
            "payment_method": "CASH",
        })

        assert resp.status_code == 201
        assert resp.json["total_cents"] == 2800
        assert len(resp.json["transactions"]) == 2
        assert product.stock == 7

    def test_failed_line_is_reported(self, client, product, seller_headers):
        resp = client.post("/api/checkout", headers=seller_headers, json={
            "lines": [
                {"product_id": product.id, "quantity": 1, "unit_price_cents": 1000},
                {"product_id": product.id, "quantity": 10, "unit_price_cents": 1000},
            ],
            "payment_method": "CARD",
        })

        assert resp.status_code == 409
        assert resp.json["error"] == "CHECKOUT_FAILED"
        assert resp.json["details"]["failed_line"] == 1
        assert resp.json["details"]["reason"] == "INSUFFICIENT_STOCK"
        assert product.stock == 10

    def test_unknown_product_is_a_failed_line(self, client, product, admin_headers):
        resp = client.post("/api/checkout", headers=admin_headers, json={
            "lines": [{"product_id": 999999, "quantity": 1, "unit_price_cents": 1000}],
            "payment_method": "CASH",
        })

        assert resp.status_code == 409
        assert resp.json["error"] == "CHECKOUT_FAILED"
        assert resp.json["details"]["failed_line"] == 0
        assert resp.json["details"]["reason"] == "VALIDATION_FAILED"


# =============================================================================
# ADMIN OPERATIONS
# =============================================================================


class TestAdminRoutes:
    def test_seller_cannot_restock(self, client, product, seller_headers):
        resp = client.post(f"/api/products/{product.id}/restock", headers=seller_headers, json={"quantity": 5})
        assert resp.status_code == 403

    def test_admin_restock(self, client, product, admin_headers):
        resp = client.post(f"/api/products/{product.id}/restock", headers=admin_headers, json={"quantity": 5})
        assert resp.status_code == 200
        assert resp.json["product"]["stock"] == 15

    def test_allocation_exceeded_is_409(self, client, shirt, admin_headers):
        resp = client.post(f"/api/products/{shirt.id}/variants", headers=admin_headers, json={"size": "XL", "stock": 21})
        assert resp.status_code == 409
        assert resp.json["error"] == "ALLOCATION_EXCEEDED"
        assert resp.json["details"]["remaining"] == 20

    def test_bulk_variants(self, client, shirt, admin_headers):
        resp = client.post(f"/api/products/{shirt.id}/variants/bulk", headers=admin_headers, json={
            "sizes": ["S", "M"], "colors": ["Noir"], "stock_per_variant": 3,
        })
        assert resp.status_code == 201
        assert len(resp.json["variants"]) == 2

    def test_project_lifecycle(self, client, db_session, admin_headers):
        resp = client.post("/api/projects", headers=admin_headers, json={"name": "Brocante"})
        assert resp.status_code == 201
        project_id = resp.json["project"]["id"]

        resp = client.patch(f"/api/projects/{project_id}/archive", headers=admin_headers, json={"archived": True})
        assert resp.json["project"]["archived"] is True

        resp = client.get("/api/projects?active=1", headers=admin_headers)
        assert resp.json["projects"] == []

        assert client.delete(f"/api/projects/{project_id}", headers=admin_headers).status_code == 200

    def test_users_admin(self, client, project, outsider, admin_headers):
        resp = client.post("/api/users", headers=admin_headers, json={"email": "new@eventstock.test", "password": "longenough"})
        assert resp.status_code == 201

        resp = client.post(f"/api/users/{outsider.id}/projects/{project.id}", headers=admin_headers)
        assert resp.status_code == 201
        resp = client.post(f"/api/users/{outsider.id}/projects/{project.id}", headers=admin_headers)
        assert resp.status_code == 400

        resp = client.patch(f"/api/users/{outsider.id}/role", headers=admin_headers, json={"role": "admin"})
        assert resp.json["user"]["role"] == "admin"

    def test_dashboard_is_admin_only(self, client, project, seller_headers, admin_headers):
        assert client.get("/api/dashboard", headers=seller_headers).status_code == 403
        assert client.get("/api/dashboard", headers=admin_headers).status_code == 200


# =============================================================================
# REPORTS / SYSTEM
# =============================================================================


class TestReportRoutes:
    def test_export_csv(self, client, product, seller_headers):
        resp = client.get(f"/api/projects/{product.project_id}/export", headers=seller_headers)

        assert resp.status_code == 200
        assert resp.mimetype == "text/csv"
        assert "attachment; filename=\"export-" in resp.headers["Content-Disposition"]
        assert resp.data.startswith(b"\xef\xbb\xbf")
        assert resp.data.decode("utf-8-sig").splitlines()[0] == "Date;Produit;Variante;SKU;Type;Quantité;Montant (€)"

    def test_summary(self, client, product, seller_headers):
        resp = client.get(f"/api/projects/{product.project_id}/summary", headers=seller_headers)
        assert resp.status_code == 200
        assert resp.json["totals"]["total_sales_cents"] == 0

    def test_health(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json["database"]["status"] == "healthy"
