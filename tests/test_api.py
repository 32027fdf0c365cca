from types import SimpleNamespace

import pytest
from kombu.exceptions import OperationalError as BrokerError

from tests.conftest import login, register

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def new_soup(client, price=10.0):
    response = client.post(
        "/api/menu-items",
        json={"name": "Soup of the Day", "price": price, "categoryId": 1},
    )
    assert response.status_code == 201, response.text
    return response.json()


def place_order(client, menu_item_id, quantity=2, method="delivery", address="1 Main St"):
    return client.post(
        "/api/orders",
        json={
            "deliveryMethod": method,
            "paymentMethod": "cash",
            "deliveryAddress": address,
            "items": [{"menuItemId": menu_item_id, "quantity": quantity}],
        },
    )


class TestRootAndHealth:
    def test_root(self, client):
        body = client.get("/").json()
        assert body["health"] == "/health"
        assert body["environment"] == "development"

    def test_health_reports_components(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["store"] == "healthy"
        assert body["paymentService"] == "healthy"
        assert body["redis"].startswith("unhealthy")
        assert body["status"] == "degraded"
        assert body["liveConnections"] == 0


class TestAuth:
    def test_register_login_status_logout(self, client):
        user = register(client)
        assert user["fullName"] == "Alice"
        assert user["role"] == "customer"
        assert "passwordHash" not in user

        assert client.get("/api/auth/status").json() == {"authenticated": False, "user": None}

        login(client, "alice", "secret1")
        status = client.get("/api/auth/status").json()
        assert status["authenticated"] is True
        assert status["user"]["username"] == "alice"

        assert client.post("/api/auth/logout").json() == {"message": "Logged out successfully"}
        assert client.get("/api/auth/status").json()["authenticated"] is False

    def test_bad_credentials(self, client):
        response = client.post("/api/auth/login", json={"username": "admin", "password": "wrong"})

        assert response.status_code == 401
        assert response.json() == {
            "success": False,
            "error": "Invalid username or password",
            "detail": None,
        }

    def test_duplicate_registration(self, client):
        register(client)
        response = client.post(
            "/api/auth/register",
            json={
                "username": "ALICE",
                "password": "secret1",
                "email": "new@example.com",
                "fullName": "Alice Again",
            },
        )
        assert response.status_code == 400
        assert response.json()["detail"] == {"username": "Username already exists"}

    def test_schema_violation_is_400_with_field_detail(self, client):
        response = client.post(
            "/api/auth/register",
            json={"username": "al", "password": "secret1", "email": "bad", "fullName": "Al"},
        )
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Invalid input"
        assert {"username", "email"} <= set(body["detail"])

    def test_tampered_session_is_anonymous(self, client):
        client.cookies.set("session", "forged")
        assert client.get("/api/auth/status").json()["authenticated"] is False


class TestMenu:
    def test_public_reads(self, client):
        assert len(client.get("/api/menu-items").json()) == 3
        assert [c["name"] for c in client.get("/api/categories").json()][0] == "Starters"
        assert [i["id"] for i in client.get("/api/categories/2/menu-items").json()] == [1, 2, 3]
        assert client.get("/api/menu-items/1").json()["price"] == 24.99

    def test_missing_item_is_404(self, client):
        response = client.get("/api/menu-items/999")
        assert response.status_code == 404
        assert response.json()["success"] is False

    def test_customer_cannot_edit_menu(self, client):
        register(client)
        login(client, "alice", "secret1")

        assert client.post("/api/categories", json={"name": "Soups"}).status_code == 403
        assert client.delete("/api/menu-items/1").status_code == 403

    def test_admin_crud(self, admin_client):
        category = admin_client.post("/api/categories", json={"name": "Soups"}).json()
        renamed = admin_client.put(f"/api/categories/{category['id']}", json={"name": "Broths"})
        assert renamed.json()["name"] == "Broths"

        item = admin_client.post(
            "/api/menu-items",
            json={"name": "Pho", "price": 12.5, "categoryId": category["id"]},
        ).json()
        assert item["available"] is True

        updated = admin_client.put(f"/api/menu-items/{item['id']}", json={"available": False})
        assert updated.json()["available"] is False

        in_use = admin_client.delete(f"/api/categories/{category['id']}")
        assert in_use.status_code == 400

        assert admin_client.delete(f"/api/menu-items/{item['id']}").json() == {
            "message": "Menu item deleted successfully"
        }
        assert admin_client.delete(f"/api/categories/{category['id']}").status_code == 200

    def test_image_upload(self, admin_client):
        response = admin_client.put(
            "/api/menu-items/1/image",
            files={"image": ("dish.png", PNG, "image/png")},
        )
        assert response.status_code == 200, response.text

        url = response.json()["imageUrl"]
        assert url.startswith("/uploads/image-") and url.endswith(".png")
        assert admin_client.get(url).content == PNG

    def test_upload_rejects_other_files(self, admin_client):
        response = admin_client.put(
            "/api/menu-items/1/image",
            files={"image": ("notes.txt", b"hello", "text/plain")},
        )
        assert response.status_code == 400
        assert "image" in response.json()["detail"]

    def test_upload_requires_admin(self, client):
        response = client.put(
            "/api/menu-items/1/image",
            files={"image": ("dish.png", PNG, "image/png")},
        )
        assert response.status_code == 401


class TestOrders:
    def test_anonymous_order_rejected(self, client):
        response = place_order(client, 1)
        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "Not authenticated", "detail": None}

    def test_delivery_order_totals(self, admin_client):
        soup = new_soup(admin_client)
        response = place_order(admin_client, soup["id"])

        assert response.status_code == 201
        order = response.json()
        assert (order["subtotal"], order["deliveryFee"], order["tax"], order["total"]) == (
            20.0, 3.99, 1.65, 25.64,
        )
        assert order["status"] == "pending"
        assert order["items"][0]["name"] == "Soup of the Day"

    def test_pickup_order_totals(self, admin_client):
        soup = new_soup(admin_client)
        order = place_order(admin_client, soup["id"], method="pickup", address=None).json()

        assert (order["deliveryFee"], order["tax"], order["total"]) == (0.0, 1.65, 21.65)
        assert order["deliveryAddress"] is None

    def test_invalid_order_lists_field_errors(self, admin_client):
        response = admin_client.post(
            "/api/orders",
            json={"deliveryMethod": "delivery", "items": []},
        )
        assert response.status_code == 400
        assert set(response.json()["detail"]) == {"deliveryAddress", "items"}

    def test_bad_quantity_is_schema_error(self, admin_client):
        response = place_order(admin_client, 1, quantity=0)
        assert response.status_code == 400
        assert "items.0.quantity" in response.json()["detail"]

    def test_customer_lifecycle(self, client):
        login(client)
        soup = new_soup(client)
        client.post("/api/auth/logout")

        register(client)
        login(client, "alice", "secret1")
        order = place_order(client, soup["id"]).json()

        assert [o["id"] for o in client.get("/api/orders").json()] == [order["id"]]
        assert client.get("/api/orders/active").status_code == 403
        assert client.put(f"/api/orders/{order['id']}", json={"status": "processing"}).status_code == 403

        paid = client.put(
            f"/api/orders/{order['id']}",
            json={"paymentCompleted": True, "paymentId": "CAP-1"},
        )
        assert paid.json()["paymentCompleted"] is True

        cancelled = client.put(f"/api/orders/{order['id']}", json={"status": "cancelled"})
        assert cancelled.json()["status"] == "cancelled"

    def test_admin_sees_everything(self, client):
        register(client)
        login(client, "alice", "secret1")
        order = place_order(client, 1, quantity=1).json()

        login(client)
        assert [o["id"] for o in client.get("/api/orders/active").json()] == [order["id"]]
        assert client.get(f"/api/orders/{order['id']}").status_code == 200

        updated = client.put(f"/api/orders/{order['id']}", json={"status": "processing"})
        assert updated.json()["status"] == "processing"

    def test_other_customers_order_forbidden(self, client):
        register(client, "alice")
        register(client, "bobby")
        login(client, "alice", "secret1")
        order = place_order(client, 1, quantity=1).json()

        login(client, "bobby", "secret1")
        assert client.get(f"/api/orders/{order['id']}").status_code == 403

    def test_large_quantity_accepted(self, admin_client):
        response = place_order(admin_client, 1, quantity=150, method="pickup")
        assert response.status_code == 201
        assert response.json()["items"][0]["quantity"] == 150

    def test_error_bodies_are_documented(self, client):
        paths = client.get("/openapi.json").json()["paths"]

        create = paths["/api/orders"]["post"]["responses"]
        assert create["400"]["content"]["application/json"]["schema"]["$ref"].endswith("/ErrorResponse")
        assert "401" in create
        assert "404" in paths["/api/reservations/{reservation_id}"]["put"]["responses"]

    def test_update_rejects_unknown_fields(self, admin_client):
        order = place_order(admin_client, 1, quantity=1).json()
        response = admin_client.put(f"/api/orders/{order['id']}", json={"total": 0.01})
        assert response.status_code == 400


class TestReservations:
    BOOKING = {
        "date": "2030-06-01T19:00:00Z",
        "partySize": 4,
        "fullName": "Alice Smith",
        "email": "alice@example.com",
        "phone": "555-0100",
    }

    def test_book_and_cancel(self, client):
        register(client)
        login(client, "alice", "secret1")

        created = client.post("/api/reservations", json=self.BOOKING)
        assert created.status_code == 201
        reservation = created.json()
        assert reservation["status"] == "pending"
        assert reservation["date"].startswith("2030-06-01T19:00:00")

        cancelled = client.put(f"/api/reservations/{reservation['id']}", json={"status": "cancelled"})
        assert cancelled.json()["status"] == "cancelled"

    def test_admin_confirms(self, client):
        register(client)
        login(client, "alice", "secret1")
        reservation = client.post("/api/reservations", json=self.BOOKING).json()

        login(client)
        assert [r["id"] for r in client.get("/api/reservations/active").json()] == [reservation["id"]]
        confirmed = client.put(f"/api/reservations/{reservation['id']}", json={"status": "confirmed"})
        assert confirmed.json()["status"] == "confirmed"

    def test_anonymous_booking_rejected(self, client):
        assert client.post("/api/reservations", json=self.BOOKING).status_code == 401


class TestSettingsAndLocations:
    def test_public_settings(self, client):
        body = client.get("/api/settings").json()
        assert body["name"] == "Paul's Restaurant"
        assert body["primaryColor"] == "#8D4E00"

    def test_admin_updates_settings_and_logo(self, admin_client):
        updated = admin_client.put("/api/settings", json={"primaryColor": "#000000"})
        assert updated.json()["primaryColor"] == "#000000"

        logo = admin_client.put("/api/settings/logo", files={"logo": ("logo.svg", b"<svg/>", "image/svg+xml")})
        assert logo.json()["logoUrl"].startswith("/uploads/logo-")

    def test_location_crud(self, admin_client):
        created = admin_client.post(
            "/api/locations",
            json={"name": "Harbor", "address": "9 Pier Rd", "phone": "555", "openingHours": "9-5"},
        ).json()
        updated = admin_client.put(f"/api/locations/{created['id']}", json={"openingHours": "10-6"})
        assert updated.json()["openingHours"] == "10-6"

        assert admin_client.delete(f"/api/locations/{created['id']}").status_code == 200
        assert admin_client.get(f"/api/locations/{created['id']}").status_code == 404

    def test_customer_cannot_update_settings(self, client):
        register(client)
        login(client, "alice", "secret1")
        assert client.put("/api/settings", json={"name": "Mine"}).status_code == 403


class TestPaypal:
    def test_setup(self, client):
        body = client.get("/paypal/setup").json()
        assert body["provider"] == "mock"
        assert body["clientId"] == "mock-client-id"
        assert body["currency"] == "USD"

    def test_create_and_capture(self, client):
        created = client.post("/paypal/order", json={"amount": 25.64, "orderId": 7})
        assert created.status_code == 200
        paypal_id = created.json()["id"]
        assert paypal_id.startswith("MOCK-")

        captured = client.post(f"/paypal/order/{paypal_id}/capture")
        assert captured.json()["status"] == "COMPLETED"
        assert captured.json()["amount"] == 25.64

        again = client.post(f"/paypal/order/{paypal_id}/capture")
        assert again.status_code == 502
        assert again.json()["detail"] == {"code": "ORDER_ALREADY_CAPTURED"}

    def test_non_positive_amount(self, client):
        assert client.post("/paypal/order", json={"amount": 0}).status_code == 400


class TestDashboardAndReports:
    def test_dashboard_is_admin_only(self, client):
        assert client.get("/api/dashboard-data").status_code == 401

    def test_dashboard_numbers(self, client):
        register(client)
        login(client, "alice", "secret1")
        kept = place_order(client, 1, quantity=1, method="pickup").json()
        dropped = place_order(client, 2, quantity=1, method="pickup").json()
        client.put(f"/api/orders/{dropped['id']}", json={"status": "cancelled"})

        login(client)
        body = client.get("/api/dashboard-data").json()

        assert body["totalOrders"] == 2
        assert body["activeOrders"] == 1
        assert body["totalRevenue"] == kept["total"]
        assert body["todayRevenue"] == kept["total"]
        assert [o["id"] for o in body["recentOrders"]] == [dropped["id"], kept["id"]]

    def test_report_is_queued(self, admin_client, monkeypatch):
        import bistro.main as main

        sent = []

        class FakeTask:
            def delay(self, orders):
                sent.append(orders)
                return SimpleNamespace(id="task-123")

        monkeypatch.setattr(main, "export_orders_report", FakeTask())
        place_order(admin_client, 1, quantity=1)

        response = admin_client.post("/api/reports/orders")

        assert response.status_code == 202
        assert response.json() == {"taskId": "task-123", "orders": 1}
        assert sent[0][0]["items"][0]["menuItemId"] == 1

    def test_broker_down_is_503(self, admin_client, monkeypatch):
        import bistro.main as main

        class DownTask:
            def delay(self, orders):
                raise BrokerError("connection refused")

        monkeypatch.setattr(main, "export_orders_report", DownTask())
        assert admin_client.post("/api/reports/orders").status_code == 503


@pytest.mark.parametrize("path", ["/api/orders", "/api/reservations", "/api/orders/active"])
def test_lists_require_login(client, path):
    assert client.get(path).status_code == 401
