"""
==============================================================================
Guest Order Tests
==============================================================================

Tests for guest order lookup, the sign-up email check and guest order
linking.

==============================================================================
"""

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from storefront.db.models import Customer, Product
from storefront.services.guest_order_service import GuestOrderService, normalize_order_number
from helpers import order_payload


def _place(client: TestClient, product: Product, email: str = "guest@example.com") -> dict:
    return client.post("/api/v1/orders", json=order_payload((product.id, 1), email=email)).json()["order"]


class TestGuestOrderLookup:

    def test_lookup(self, client: TestClient, cafe_product: Product):
        order = _place(client, cafe_product)

        response = client.post(
            "/api/v1/guest-orders/lookup",
            json={"email": "GUEST@example.com", "order_number": "1001"}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["order"]["id"] == order["id"]
        assert data["has_account"] is False
        assert data["message"] == "Create an account to track all your orders"

    def test_lookup_wrong_email(self, client: TestClient, cafe_product: Product):
        _place(client, cafe_product)

        response = client.post(
            "/api/v1/guest-orders/lookup",
            json={"email": "someone@example.com", "order_number": "#1001"}
        )
        assert response.status_code == 404
        error = response.json()["error"]
        assert error["code"] == "ORDER_NOT_FOUND"
        assert error["message"] == (
            "Order with email someone@example.com and order number #1001 not found"
        )

    def test_lookup_account_order(self, client: TestClient, customer: Customer, cafe_product: Product):
        _place(client, cafe_product, email="jane@example.com")

        response = client.post(
            "/api/v1/guest-orders/lookup",
            json={"email": "jane@example.com", "order_number": "#1001"}
        )
        assert response.json()["has_account"] is True
        assert response.json()["message"] is None


class TestCheckEmail:

    def test_no_orders(self, client: TestClient):
        response = client.post("/api/v1/guest-orders/check-email", json={"email": "new@example.com"})
        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "has_guest_orders": False,
            "guest_order_count": 0,
            "message": None,
        }

    def test_counts_guest_orders(self, client: TestClient, cafe_product: Product):
        _place(client, cafe_product)
        _place(client, cafe_product)

        data = client.post(
            "/api/v1/guest-orders/check-email",
            json={"email": "guest@example.com"}
        ).json()
        assert data["guest_order_count"] == 2
        assert data["message"].startswith("You have 2 previous orders.")

    def test_invalid_email(self, client: TestClient):
        response = client.post("/api/v1/guest-orders/check-email", json={"email": "not-an-email"})
        assert response.status_code == 400


class TestGuestOrderService:
    """Direct tests for linking and guest tokens."""

    def test_normalize_order_number(self):
        assert normalize_order_number(" 1001 ") == "#1001"
        assert normalize_order_number("#1001") == "#1001"

    def test_link_recomputes_stats(self, client: TestClient, db: Session, cafe_product: Product):
        _place(client, cafe_product, email="later@example.com")
        customer = Customer(email="later@example.com", name="Later")
        db.add(customer)
        db.commit()

        service = GuestOrderService(db)
        assert service.has_guest_orders("later@example.com")
        assert service.link_guest_orders_to_customer(customer.id, "later@example.com") == 1

        db.refresh(customer)
        assert customer.total_orders == 1
        assert customer.total_spent == 531.0
        assert customer.average_order_value == 531.0
        assert customer.created_from_guest is True
        assert not service.has_guest_orders("later@example.com")

    def test_guest_token_round_trip(self, db: Session):
        service = GuestOrderService(db)
        token = service.generate_guest_token("android-1")

        payload = service.verify_guest_token(token["guest_token"])
        assert payload["sub"] == token["guest_id"]
        assert payload["device_id"] == "android-1"
        assert service.verify_guest_token("garbage") is None
