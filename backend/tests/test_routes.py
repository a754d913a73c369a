"""
HTTP API tests: actor resolution, capability checks and error status mapping.
"""

from datetime import timedelta

from conftest import actor_headers
from tiendapos.time_utils import day_bounds, to_utc_z


def _post_sale(http, user, product, quantity=1, **extra):
    body = {
        "items": [{"product_id": product.id, "quantity": quantity}],
        "payment_method": "cash",
        "tendered": "100.00",
    }
    body.update(extra)
    return http.post("/api/sales", json=body, headers=actor_headers(user))


class TestActorAndCapabilities:
    def test_missing_actor_header(self, client, db_session, product_a):
        response = client.post("/api/sales", json={})
        assert response.status_code == 401

    def test_unknown_actor(self, client, db_session):
        response = client.get("/api/sales/1", headers={"X-User-Id": "999"})
        assert response.status_code == 401

    def test_inactive_actor(self, client, db_session, cashier):
        cashier.is_active = False
        db_session.commit()
        response = client.get("/api/sales/1", headers=actor_headers(cashier))
        assert response.status_code == 401

    def test_cashier_cannot_void(self, client, db_session, cashier, product_a):
        sale_id = _post_sale(client, cashier, product_a).json["sale"]["id"]

        response = client.post(f"/api/sales/{sale_id}/void", json={}, headers=actor_headers(cashier))

        assert response.status_code == 403
        assert response.json["required_permission"] == "VOID_SALE"

    def test_cashier_cannot_close_cash(self, client, db_session, cashier):
        response = client.post("/api/cash/closings", json={}, headers=actor_headers(cashier))
        assert response.status_code == 403


class TestSalesRoutes:
    def test_post_sale(self, client, db_session, cashier, product_a):
        response = _post_sale(client, cashier, product_a, quantity=3)

        assert response.status_code == 201
        sale = response.json["sale"]
        assert sale["folio"] == "V-000001"
        assert sale["total_cents"] == 3000
        assert sale["change_cents"] == 7000
        assert sale["cashier_user_id"] == cashier.id
        assert len(sale["details"]) == 1

    def test_post_sale_with_inline_client(self, client, db_session, cashier, product_a):
        response = _post_sale(client, cashier, product_a, client={"name": "Luis", "phone": "5511"})
        assert response.status_code == 201
        assert response.json["sale"]["client_id"] is not None

    def test_get_sale_by_folio(self, client, db_session, cashier, product_a):
        sale_id = _post_sale(client, cashier, product_a).json["sale"]["id"]

        found = client.get("/api/sales/folio/v-000001", headers=actor_headers(cashier))
        missing = client.get("/api/sales/folio/V-999999", headers=actor_headers(cashier))

        assert found.status_code == 200
        assert found.json["sale"]["id"] == sale_id
        assert missing.status_code == 404
        assert missing.json["details"] == {"folio": "V-999999"}

    def test_validation_errors_map_to_400(self, client, db_session, cashier, product_a):
        response = _post_sale(client, cashier, product_a, quantity=50)

        assert response.status_code == 400
        assert response.json["kind"] == "insufficient_stock"
        assert response.json["details"]["items"][0]["on_hand"] == 10

    def test_empty_cart(self, client, db_session, cashier):
        response = client.post(
            "/api/sales", json={"items": [], "payment_method": "cash"}, headers=actor_headers(cashier),
        )
        assert response.status_code == 400
        assert response.json["kind"] == "empty_cart"

    def test_unknown_product_maps_to_404(self, client, db_session, cashier, product_a):
        response = client.post(
            "/api/sales",
            json={"items": [{"product_id": 999, "quantity": 1}], "payment_method": "card"},
            headers=actor_headers(cashier),
        )
        assert response.status_code == 404
        assert response.json["kind"] == "product_not_found"

    def test_void_twice_maps_to_409(self, client, db_session, cashier, admin, product_a):
        sale_id = _post_sale(client, cashier, product_a).json["sale"]["id"]

        first = client.post(f"/api/sales/{sale_id}/void", json={"reason": "error"}, headers=actor_headers(admin))
        second = client.post(f"/api/sales/{sale_id}/void", json={}, headers=actor_headers(admin))

        assert first.status_code == 200
        assert first.json["sale"]["voided"] is True
        assert second.status_code == 409
        assert second.json["kind"] == "already_voided"

    def test_get_sale_and_receipt(self, client, db_session, cashier, product_a):
        sale_id = _post_sale(client, cashier, product_a, quantity=2).json["sale"]["id"]

        sale = client.get(f"/api/sales/{sale_id}", headers=actor_headers(cashier))
        receipt = client.get(f"/api/sales/{sale_id}/receipt", headers=actor_headers(cashier))

        assert sale.status_code == 200
        assert receipt.status_code == 200
        assert receipt.json["receipt"]["total"] == "20.00"
        assert receipt.json["receipt"]["negocio"]["nombre"] == "Mi Tienda POS"

    def test_missing_sale_is_404(self, client, db_session, admin):
        response = client.get("/api/sales/4040", headers=actor_headers(admin))
        assert response.status_code == 404
        assert response.json["kind"] == "sale_not_found"

    def test_list_sales_defaults_to_today(self, client, db_session, cashier, admin, product_a):
        _post_sale(client, cashier, product_a)
        response = client.get("/api/sales", headers=actor_headers(admin))
        assert response.status_code == 200
        assert len(response.json["sales"]) == 1


class TestCashRoutes:
    def test_movement_lifecycle(self, client, db_session, cashier, admin):
        created = client.post(
            "/api/cash/movements",
            json={"type": "ingreso", "amount": "200", "description": "Fondo"},
            headers=actor_headers(cashier),
        )
        assert created.status_code == 201
        movement_id = created.json["movement"]["id"]

        listed = client.get("/api/cash/movements", headers=actor_headers(cashier))
        assert [m["id"] for m in listed.json["movements"]] == [movement_id]

        forbidden = client.delete(f"/api/cash/movements/{movement_id}", headers=actor_headers(cashier))
        assert forbidden.status_code == 403

        deleted = client.delete(f"/api/cash/movements/{movement_id}", json={"reason": "dup"}, headers=actor_headers(admin))
        assert deleted.status_code == 200
        assert deleted.json["deleted"]["amount_cents"] == 20000

        missing = client.delete(f"/api/cash/movements/{movement_id}", headers=actor_headers(admin))
        assert missing.status_code == 404

    def test_invalid_amount(self, client, db_session, cashier):
        response = client.post(
            "/api/cash/movements",
            json={"type": "expense", "amount": "0", "description": "x"},
            headers=actor_headers(cashier),
        )
        assert response.status_code == 400
        assert response.json["kind"] == "invalid_input"

    def test_summary_preview_and_close(self, client, db_session, cashier, admin, product_a):
        _post_sale(client, cashier, product_a, quantity=2)
        client.post(
            "/api/cash/movements",
            json={"type": "expense", "amount": "5", "description": "Hielo"},
            headers=actor_headers(cashier),
        )

        summary = client.get("/api/cash/summary", headers=actor_headers(cashier))
        assert summary.json["summary"]["cash_balance_cents"] == 1500

        preview = client.get("/api/cash/closings/preview?counted_cash=15", headers=actor_headers(admin))
        assert preview.json["preview"]["status"] == "balanced"

        start, end = day_bounds()
        closed = client.post(
            "/api/cash/closings",
            json={
                "period_start": to_utc_z(start),
                "period_end": to_utc_z(end),
                "counted_cash": "14.00",
                "notes": "Falta un peso",
            },
            headers=actor_headers(admin),
        )
        assert closed.status_code == 201
        closing = closed.json["closing"]
        assert closing["expected_cash_cents"] == 1500
        assert closing["difference_cents"] == -100
        assert closing["status"] == "shortage"
        assert closing["overlapping_closing_ids"] == []

        fetched = client.get(f"/api/cash/closings/{closing['id']}", headers=actor_headers(admin))
        assert fetched.json["closing"]["counted_cash_cents"] == 1400

        listed = client.get("/api/cash/closings", headers=actor_headers(admin))
        assert [c["id"] for c in listed.json["closings"]] == [closing["id"]]

    def test_close_with_bad_period(self, client, db_session, admin):
        start, _ = day_bounds()
        response = client.post(
            "/api/cash/closings",
            json={
                "period_start": to_utc_z(start),
                "period_end": to_utc_z(start - timedelta(hours=1)),
                "counted_cash": 0,
            },
            headers=actor_headers(admin),
        )
        assert response.status_code == 400


class TestReportRoutes:
    def test_reports(self, client, db_session, cashier, admin, product_a, make_product):
        sale_id = _post_sale(client, cashier, product_a, quantity=2).json["sale"]["id"]
        make_product("Escaso", 100, 1, min_stock=3)

        profit = client.get("/api/reports/gross-profit", headers=actor_headers(admin))
        margin = client.get(f"/api/reports/sales/{sale_id}/margin", headers=actor_headers(admin))
        low = client.get("/api/reports/low-stock", headers=actor_headers(admin))

        assert profit.json["gross_utility_cents"] == 800
        assert margin.json["utility_cents"] == 800
        assert [p["description"] for p in low.json["products"]] == ["Escaso"]

    def test_reports_require_capability(self, client, db_session, cashier):
        response = client.get("/api/reports/low-stock", headers=actor_headers(cashier))
        assert response.status_code == 403


class TestHealth:
    def test_health(self, client, db_session):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json["checks"]["database"]["status"] == "healthy"

    def test_cors_origins_come_from_config(self, app, client, db_session, monkeypatch):
        monkeypatch.setitem(app.config, "CORS_ORIGINS", ["https://caja.example.com"])

        allowed = client.get("/api/health", headers={"Origin": "https://caja.example.com"})
        other = client.get("/api/health", headers={"Origin": "http://localhost:5173"})

        assert allowed.headers["Access-Control-Allow-Origin"] == "https://caja.example.com"
        assert "Access-Control-Allow-Origin" not in other.headers
