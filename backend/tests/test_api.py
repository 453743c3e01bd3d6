"""
API tests.

Verifies:
- Unauthenticated requests return 401
- Role gates return 403
- Domain errors map to their status codes
- End-to-end flows through the HTTP surface
"""

import pytest


# =============================================================================
# UNAUTHENTICATED ACCESS - 401
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/shops"),
            ("POST", "/api/shops"),
            ("GET", "/api/products"),
            ("GET", "/api/inventory"),
            ("POST", "/api/sales"),
            ("GET", "/api/sales"),
            ("GET", "/api/transfers"),
            ("GET", "/api/notifications"),
            ("GET", "/api/deliveries"),
            ("GET", "/api/employees"),
            ("GET", "/api/expenses"),
            ("GET", "/api/reports/profit"),
            ("GET", "/api/state"),
            ("GET", "/api/auth/me"),
        ],
    )
    def test_requires_token(self, client, db_session, method, path):
        response = client.open(path, method=method, json={})
        assert response.status_code == 401

    def test_invalid_token(self, client, db_session):
        response = client.get("/api/auth/me", headers={"Authorization": "Bearer nonsense"})
        assert response.status_code == 401


# =============================================================================
# AUTH
# =============================================================================


class TestAuthRoutes:

    def test_login_and_me(self, client, seed, login):
        headers = login(seed.manager_a)

        response = client.get("/api/auth/me", headers=headers)

        assert response.status_code == 200
        assert response.json["principal"]["role"] == "manager"
        assert response.json["principal"]["shop_id"] == seed.shop_a

    def test_wrong_password(self, client, seed):
        response = client.post("/api/auth/login", json={"email": seed.admin.email, "password": "WrongPassword1"})
        assert response.status_code == 401
        assert response.json["kind"] == "unauthenticated"

    def test_missing_fields(self, client, seed):
        response = client.post("/api/auth/login", json={"email": seed.admin.email})
        assert response.status_code == 400

    def test_logout_revokes_token(self, client, seed, login):
        headers = login(seed.admin)

        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_rider_edits_own_profile(self, client, seed, login):
        headers = login(seed.rider_1)

        response = client.patch("/api/auth/me", headers=headers, json={
            "name": "Rider One", "phone": "555-0199", "role": "admin",
        })

        assert response.status_code == 200
        assert response.json["profile"]["name"] == "Rider One"
        assert response.json["profile"]["phone"] == "555-0199"
        assert response.json["profile"]["role"] == "rider"
        assert client.get("/api/auth/me", headers=headers).json["principal"]["role"] == "rider"

    def test_profile_edit_requires_token(self, client, db_session):
        response = client.patch("/api/auth/me", json={"name": "Nobody"})
        assert response.status_code == 401

    def test_self_registration_disabled(self, client, db_session):
        response = client.post("/api/auth/register", json={"email": "x@shop.test", "password": "Password123!"})
        assert response.status_code == 403

    def test_reset_challenge_does_not_reveal_accounts(self, client, seed):
        known = client.post("/api/auth/reset-challenge", json={"email": seed.admin.email})
        unknown = client.post("/api/auth/reset-challenge", json={"email": "ghost@shop.test"})
        assert known.status_code == unknown.status_code == 202
        assert known.json == unknown.json


# =============================================================================
# ROLE GATES - 403
# =============================================================================


class TestRoleGates:

    @pytest.mark.parametrize(
        "who,method,path",
        [
            ("employee_a", "POST", "/api/shops"),
            ("manager_a", "POST", "/api/products"),
            ("employee_a", "GET", "/api/sales"),
            ("employee_a", "GET", "/api/reports/summary"),
            ("rider_1", "POST", "/api/sales"),
            ("rider_1", "GET", "/api/inventory"),
            ("employee_a", "POST", "/api/employees"),
        ],
    )
    def test_role_denied(self, client, seed, login, who, method, path):
        response = client.open(path, method=method, json={}, headers=login(getattr(seed, who)))
        assert response.status_code == 403

    def test_manager_pinned_to_own_shop(self, client, seed, login):
        response = client.get(f"/api/inventory?shop_id={seed.shop_b}", headers=login(seed.manager_a))
        assert response.status_code == 403
        assert response.json["kind"] == "identity_mismatch"

    def test_admin_reads_any_shop(self, client, seed, stock, login):
        stock(seed.shop_b, seed.widget, current_stock=2)
        response = client.get(f"/api/inventory?shop_id={seed.shop_b}", headers=login(seed.admin))
        assert response.status_code == 200
        assert len(response.json["items"]) == 1


# =============================================================================
# SALES
# =============================================================================


class TestSalesRoutes:

    def test_record_sale(self, client, seed, stock, login):
        widget = stock(seed.shop_a, seed.widget, current_stock=10, low_stock_threshold=2)

        response = client.post("/api/sales", headers=login(seed.employee_a), json={
            "shop_id": seed.shop_a,
            "items": [{"inventory_id": widget, "quantity": 3}],
            "payment_method": "cash",
            "discount_percent": 10,
        })

        assert response.status_code == 201
        assert response.json["sale"]["total"] == "27.00"
        assert response.json["side_effects"]["ok"] is True

        row = client.get(f"/api/inventory/{widget}", headers=login(seed.manager_a)).json
        assert row["current_stock"] == 7
        assert row["stock_status"] == "in_stock"

    def test_oversell_is_400(self, client, seed, stock, login):
        widget = stock(seed.shop_a, seed.widget, current_stock=1)

        response = client.post("/api/sales", headers=login(seed.employee_a), json={
            "shop_id": seed.shop_a,
            "items": [{"inventory_id": widget, "quantity": 2}],
            "payment_method": "cash",
        })

        assert response.status_code == 400
        assert response.json["kind"] == "validation_failure"

    def test_unknown_record_is_404(self, client, seed, login):
        response = client.post("/api/sales", headers=login(seed.employee_a), json={
            "shop_id": seed.shop_a,
            "items": [{"inventory_id": "missing", "quantity": 1}],
            "payment_method": "cash",
        })
        assert response.status_code == 404

    def test_sale_updates_open_state(self, client, seed, stock, login):
        widget = stock(seed.shop_a, seed.widget, current_stock=10)
        headers = login(seed.manager_a)

        client.post("/api/sales", headers=headers, json={
            "shop_id": seed.shop_a,
            "items": [{"inventory_id": widget, "quantity": 1}],
            "payment_method": "card",
        })

        snapshot = client.get("/api/state", headers=headers).json
        assert len(snapshot["sales"]) == 1
        assert snapshot["inventory"][0]["current_stock"] == 9


# =============================================================================
# REPORTS / TRANSFERS / EMPLOYEES
# =============================================================================


class TestFlows:

    def test_profit_report(self, client, seed, stock, login):
        widget = stock(seed.shop_a, seed.widget, current_stock=10)
        gadget = stock(seed.shop_a, seed.gadget, current_stock=10)
        headers = login(seed.manager_a)
        for inventory_id in (widget, gadget):
            client.post("/api/sales", headers=headers, json={
                "shop_id": seed.shop_a,
                "items": [{"inventory_id": inventory_id, "quantity": 1}],
                "payment_method": "cash",
            })
        client.post("/api/expenses", headers=headers, json={
            "shop_id": seed.shop_a, "category": "Rent", "amount": "5.00",
        })

        response = client.get("/api/reports/profit?refresh=1", headers=headers)

        assert response.status_code == 200
        assert response.json["sales_total"] == "35.50"
        assert response.json["expense_total"] == "5.00"
        assert response.json["profit"] == "30.50"

    @pytest.mark.parametrize(
        "path,field",
        [
            ("/api/reports/profit?start=not-a-date", "start"),
            ("/api/reports/summary?end=2024-02-30", "end"),
            ("/api/sales?start=2024-13-45", "start"),
            ("/api/sales?end=yesterday", "end"),
            ("/api/expenses?start=31/03/2024", "start"),
        ],
    )
    def test_malformed_range_is_400(self, client, seed, login, path, field):
        response = client.get(path, headers=login(seed.manager_a))

        assert response.status_code == 400
        assert response.json["kind"] == "validation_failure"
        assert response.json["details"]["field"] == field

    def test_transfer_round_trip(self, client, seed, stock, login):
        stock(seed.shop_a, seed.widget, current_stock=10)

        created = client.post("/api/transfers", headers=login(seed.manager_a), json={
            "from_shop_id": seed.shop_a,
            "to_shop_id": seed.shop_b,
            "product_id": seed.widget,
            "quantity": 4,
        })
        assert created.status_code == 201
        transfer_id = created.json["transfer"]["id"]

        manager_b = login(seed.manager_b)
        feed = client.get("/api/notifications", headers=manager_b).json
        assert feed["unread"] == 1

        approved = client.post(f"/api/transfers/{transfer_id}/approve", headers=manager_b)
        assert approved.status_code == 200
        assert approved.json["transfer"]["status"] == "approved"

        again = client.post(f"/api/transfers/{transfer_id}/reject", headers=manager_b)
        assert again.status_code == 400

    def test_deleted_employee_cannot_sign_in(self, client, seed, login):
        employee_headers = login(seed.employee_a)

        response = client.delete(f"/api/employees/{seed.employee_a.id}", headers=login(seed.manager_a))

        assert response.status_code == 200
        assert response.json["sessions_revoked"] >= 1
        assert client.get("/api/auth/me", headers=employee_headers).status_code == 401
        login_again = client.post("/api/auth/login", json={"email": seed.employee_a.email, "password": "Password123!"})
        assert login_again.status_code == 401


# =============================================================================
# SYSTEM
# =============================================================================


class TestSystem:

    def test_health(self, client, db_session):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json["checks"]["database"]["status"] == "healthy"

    def test_version(self, client, db_session):
        response = client.get("/version")
        assert response.json["api_version"] == "1.0.0"

    def test_cors_is_off_by_default(self, client, db_session):
        response = client.get("/health", headers={"Origin": "http://localhost:5173"})
        assert "Access-Control-Allow-Origin" not in response.headers

    def test_cors_allows_configured_origin(self, app, client, db_session, monkeypatch):
        monkeypatch.setitem(app.config, "CORS_ALLOWED_ORIGINS", ["https://back-office.shop.test"])

        allowed = client.get("/health", headers={"Origin": "https://back-office.shop.test"})
        other = client.get("/health", headers={"Origin": "https://elsewhere.test"})

        assert allowed.headers["Access-Control-Allow-Origin"] == "https://back-office.shop.test"
        assert "Access-Control-Allow-Origin" not in other.headers
