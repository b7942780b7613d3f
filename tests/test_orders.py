"""
==============================================================================
Order Tests
==============================================================================

Tests for checkout pricing, stock handling, status transitions,
reporting and order deletion.

==============================================================================
"""

import csv
import io
from datetime import timedelta

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from storefront.db.models import Customer, Order, Product
from storefront.utils.clock import utc_now
from helpers import order_payload


ORDERS_URL = "/api/v1/orders"


def _place(client: TestClient, *items, **kwargs) -> dict:
    response = client.post(ORDERS_URL, json=order_payload(*items, **kwargs))
    assert response.status_code == 201, response.text
    return response.json()["order"]


class TestCheckout:
    """Tests for order creation."""

    def test_guest_checkout_prices_from_catalog(
        self,
        client: TestClient,
        db: Session,
        cafe_product: Product
    ):
        response = client.post(ORDERS_URL, json=order_payload((cafe_product.id, 2)))
        assert response.status_code == 201
        order = response.json()["order"]

        assert order["order_number"] == "#1001"
        assert order["subtotal"] == 900.0
        assert order["tax"] == 162.0
        assert order["total"] == 1062.0
        assert order["total_formatted"] == "PKR 1,062"
        assert order["currency"] == "PKR"
        assert order["section"] == "CAFE"
        assert order["payment_status"] == "PENDING"
        assert order["fulfillment_status"] == "UNFULFILLED"
        assert order["guest_order"] is True
        assert order["customer"]["id"] is None
        assert order["items"][0]["price"] == 450.0
        assert order["shipping_address"]["city"] == "Lahore"

        db.refresh(cafe_product)
        assert cafe_product.stock_quantity == 18

    def test_order_numbers_increase(self, client: TestClient, cafe_product: Product):
        first = _place(client, (cafe_product.id, 1))
        second = _place(client, (cafe_product.id, 1))

        assert first["order_number"] == "#1001"
        assert second["order_number"] == "#1002"

    def test_mixed_cart(self, client: TestClient, cafe_product: Product, book_product: Product):
        order = _place(client, (cafe_product.id, 1), (book_product.id, 2))

        assert order["items_count"] == 2
        assert order["subtotal"] == 2850.0
        assert order["tax"] == 513.0
        assert order["total"] == 3363.0
        assert order["section"] == "CAFE"

    def test_insufficient_stock_changes_nothing(
        self,
        client: TestClient,
        db: Session,
        cafe_product: Product,
        book_product: Product
    ):
        response = client.post(
            ORDERS_URL,
            json=order_payload((cafe_product.id, 2), (book_product.id, 6))
        )
        assert response.status_code == 400
        error = response.json()["error"]
        assert error["message"] == 'Insufficient stock for "Dune". Only 5 unit(s) available.'
        assert error["details"]["available"] == 5

        db.refresh(cafe_product)
        db.refresh(book_product)
        assert cafe_product.stock_quantity == 20
        assert book_product.stock_quantity == 5
        assert db.query(Order).count() == 0

    def test_repeated_lines_share_stock(self, client: TestClient, book_product: Product):
        response = client.post(
            ORDERS_URL,
            json=order_payload((book_product.id, 3), (book_product.id, 3))
        )
        assert response.status_code == 400
        assert "Only 2 unit(s) available" in response.json()["error"]["message"]

    def test_empty_cart(self, client: TestClient):
        response = client.post(ORDERS_URL, json=order_payload())
        assert response.status_code == 400
        assert response.json()["error"]["message"] == "At least one product is required"

    def test_unknown_product(self, client: TestClient):
        response = client.post(ORDERS_URL, json=order_payload(("missing-id", 1)))
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "PRODUCT_NOT_FOUND"

    def test_deleted_product(
        self,
        client: TestClient,
        admin_headers: dict,
        cafe_product: Product
    ):
        client.delete(f"/api/v1/products/{cafe_product.id}", headers=admin_headers)

        response = client.post(ORDERS_URL, json=order_payload((cafe_product.id, 1)))
        assert response.status_code == 400
        assert response.json()["error"]["message"] == (
            "Product is no longer available: Cappuccino"
        )

    def test_selling_out_marks_product_out_of_stock(
        self,
        client: TestClient,
        db: Session,
        book_product: Product
    ):
        _place(client, (book_product.id, 5))

        db.refresh(book_product)
        assert book_product.stock_quantity == 0
        assert book_product.availability.value == "OUT_OF_STOCK"

    def test_customer_checkout_updates_stats(
        self,
        client: TestClient,
        db: Session,
        customer: Customer,
        customer_headers: dict,
        cafe_product: Product
    ):
        response = client.post(
            ORDERS_URL,
            headers=customer_headers,
            json=order_payload((cafe_product.id, 2), email="other@example.com")
        )
        assert response.status_code == 201
        order = response.json()["order"]
        assert order["guest_order"] is False
        assert order["customer"]["id"] == customer.id

        db.refresh(customer)
        assert customer.total_orders == 1
        assert customer.total_spent == 1062.0
        assert customer.last_order_date is not None

    def test_email_match_links_existing_customer(
        self,
        client: TestClient,
        customer: Customer,
        cafe_product: Product
    ):
        order = _place(client, (cafe_product.id, 1), email="Jane@Example.com")
        assert order["customer"]["id"] == customer.id
        assert order["guest_order"] is False

    def test_quantity_limit(self, client: TestClient, db: Session, cafe_product: Product):
        cafe_product.stock_quantity = 5000
        db.commit()

        response = client.post(ORDERS_URL, json=order_payload((cafe_product.id, 1001)))
        assert response.status_code == 400
        assert response.json()["error"]["message"] == (
            'Quantity for "Cappuccino" exceeds maximum allowed (1000)'
        )

        db.refresh(cafe_product)
        assert cafe_product.stock_quantity == 5000

    def test_line_limit(self, client: TestClient, db: Session, cafe_product: Product):
        lines = [(cafe_product.id, 1)] * 101

        response = client.post(ORDERS_URL, json=order_payload(*lines))
        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Maximum 100 items allowed per order"
        assert db.query(Order).count() == 0

    def test_number_clash_rolls_back_everything(
        self,
        client: TestClient,
        db: Session,
        customer: Customer,
        customer_headers: dict,
        cafe_product: Product
    ):
        _place(client, (cafe_product.id, 1), email="first@example.com")
        _place(client, (cafe_product.id, 1), email="second@example.com")

        # #1001 looks newest, so the next number computed is the taken #1002
        first = db.query(Order).filter(Order.order_number == "#1001").one()
        first.created_at = utc_now() + timedelta(hours=1)
        db.commit()

        response = client.post(
            ORDERS_URL,
            headers=customer_headers,
            json=order_payload((cafe_product.id, 3), email="jane@example.com")
        )
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "CONFLICT"

        db.refresh(cafe_product)
        db.refresh(customer)
        assert cafe_product.stock_quantity == 18
        assert customer.total_orders == 0
        assert customer.total_spent == 0
        assert db.query(Order).count() == 2


class TestOrderManagement:
    """Tests for staff order endpoints."""

    def test_list_requires_staff(self, client: TestClient, customer_headers: dict):
        response = client.get(ORDERS_URL, headers=customer_headers)
        assert response.status_code == 401

    def test_list_and_search(self, client: TestClient, admin_headers: dict, cafe_product: Product):
        _place(client, (cafe_product.id, 1), email="alpha@example.com", name="Alpha")
        _place(client, (cafe_product.id, 1), email="beta@example.com", name="Beta")

        response = client.get(ORDERS_URL, headers=admin_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["pagination"]["total_orders"] == 2
        assert data["pagination"]["has_next"] is False

        search = client.get(ORDERS_URL, headers=admin_headers, params={"search": "beta"})
        assert [o["customer"]["name"] for o in search.json()["orders"]] == ["Beta"]

    def test_invalid_sort_is_rejected(self, client: TestClient, admin_headers: dict):
        response = client.get(ORDERS_URL, headers=admin_headers, params={"sort_by": "secret"})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_get_by_number(self, client: TestClient, admin_headers: dict, cafe_product: Product):
        order = _place(client, (cafe_product.id, 1))

        response = client.get(f"{ORDERS_URL}/number/1001", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["order"]["id"] == order["id"]

    def test_get_missing(self, client: TestClient, admin_headers: dict):
        response = client.get(f"{ORDERS_URL}/nope", headers=admin_headers)
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "ORDER_NOT_FOUND"

    def test_payment_transitions(self, client: TestClient, admin_headers: dict, cafe_product: Product):
        order = _place(client, (cafe_product.id, 1))
        url = f"{ORDERS_URL}/{order['id']}/payment-status"

        paid = client.patch(url, headers=admin_headers, json={"payment_status": "PAID"})
        assert paid.status_code == 200
        assert paid.json()["order"]["payment_status"] == "PAID"

        back = client.patch(url, headers=admin_headers, json={"payment_status": "PENDING"})
        assert back.status_code == 400
        assert back.json()["error"]["message"] == "Cannot change payment status from PAID to PENDING"

        refunded = client.patch(url, headers=admin_headers, json={"payment_status": "REFUNDED"})
        assert refunded.status_code == 200

    def test_fulfillment_transitions(
        self,
        client: TestClient,
        admin_headers: dict,
        cafe_product: Product
    ):
        order = _place(client, (cafe_product.id, 1))
        url = f"{ORDERS_URL}/{order['id']}/fulfillment-status"

        assert client.patch(
            url, headers=admin_headers, json={"fulfillment_status": "SCHEDULED"}
        ).status_code == 200
        assert client.patch(
            url, headers=admin_headers, json={"fulfillment_status": "FULFILLED"}
        ).status_code == 200

        response = client.patch(url, headers=admin_headers, json={"fulfillment_status": "PARTIAL"})
        assert response.status_code == 400

    def test_update_notes_and_tags(self, client: TestClient, admin_headers: dict, cafe_product: Product):
        order = _place(client, (cafe_product.id, 1))

        response = client.patch(
            f"{ORDERS_URL}/{order['id']}",
            headers=admin_headers,
            json={"notes": "Leave at the door", "tags": ["gift"]}
        )
        assert response.status_code == 200
        updated = response.json()["order"]
        assert updated["notes"] == "Leave at the door"
        assert updated["tags"] == ["gift"]

    def test_stats(
        self,
        client: TestClient,
        admin_headers: dict,
        cafe_product: Product,
        book_product: Product
    ):
        first = _place(client, (cafe_product.id, 2))
        _place(client, (book_product.id, 1))
        client.patch(
            f"{ORDERS_URL}/{first['id']}/payment-status",
            headers=admin_headers,
            json={"payment_status": "PAID"}
        )

        response = client.get(f"{ORDERS_URL}/stats", headers=admin_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["overview"]["total_orders"] == 2
        assert data["overview"]["total_revenue"] == 2478.0
        assert data["overview"]["average_order_value"] == 1239.0
        assert data["payment_status"]["PAID"] == 1
        assert data["payment_status"]["PENDING"] == 1
        assert data["by_section"]["BOOKS"] == {"orders": 1, "revenue": 1416.0}
        assert data["by_section"]["FLOWERS"] == {"orders": 0, "revenue": 0.0}

    def test_export_csv(self, client: TestClient, admin_headers: dict, cafe_product: Product):
        _place(client, (cafe_product.id, 2), name="Guest Shopper")

        response = client.get(f"{ORDERS_URL}/export", headers=admin_headers)
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "attachment" in response.headers["content-disposition"]

        rows = list(csv.reader(io.StringIO(response.text)))
        assert rows[0][0] == "Order Number"
        assert rows[1][0] == "#1001"
        assert rows[1][1] == "Guest Shopper"
        assert rows[1][7] == "1"
        assert rows[1][8] == "1062.00"

    def test_duplicate(
        self,
        client: TestClient,
        db: Session,
        admin_headers: dict,
        admin_user,
        cafe_product: Product
    ):
        payload = order_payload((cafe_product.id, 2))
        payload["notes"] = "Extra hot"
        original = client.post(ORDERS_URL, json=payload).json()["order"]

        response = client.post(f"{ORDERS_URL}/{original['id']}/duplicate", headers=admin_headers)
        assert response.status_code == 201
        duplicate = response.json()["order"]
        assert duplicate["order_number"] == "#1002"
        assert duplicate["notes"] == "Duplicate of #1001"
        assert duplicate["total"] == original["total"]
        assert duplicate["created_by"] == admin_user.id

        db.refresh(cafe_product)
        assert cafe_product.stock_quantity == 16


class TestOrderDeletion:

    def test_soft_delete(self, client: TestClient, db: Session, admin_headers: dict, cafe_product: Product):
        order = _place(client, (cafe_product.id, 1))

        response = client.delete(f"{ORDERS_URL}/{order['id']}", headers=admin_headers)
        assert response.status_code == 200

        assert client.get(f"{ORDERS_URL}/{order['id']}", headers=admin_headers).status_code == 404
        assert db.query(Order).count() == 1

    def test_paid_order_cannot_be_deleted(
        self,
        client: TestClient,
        admin_headers: dict,
        cafe_product: Product
    ):
        order = _place(client, (cafe_product.id, 1))
        client.patch(
            f"{ORDERS_URL}/{order['id']}/payment-status",
            headers=admin_headers,
            json={"payment_status": "PAID"}
        )

        response = client.delete(f"{ORDERS_URL}/{order['id']}", headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["error"]["message"] == (
            "Cannot delete paid orders. Please refund the order first."
        )

    def test_fulfilled_order_cannot_be_deleted(
        self,
        client: TestClient,
        admin_headers: dict,
        cafe_product: Product
    ):
        order = _place(client, (cafe_product.id, 1))
        client.patch(
            f"{ORDERS_URL}/{order['id']}/fulfillment-status",
            headers=admin_headers,
            json={"fulfillment_status": "FULFILLED"}
        )

        response = client.delete(f"{ORDERS_URL}/{order['id']}", headers=admin_headers)
        assert response.status_code == 400

    def test_hard_delete_requires_admin(
        self,
        client: TestClient,
        db: Session,
        admin_headers: dict,
        staff_headers: dict,
        cafe_product: Product
    ):
        order = _place(client, (cafe_product.id, 1))
        url = f"{ORDERS_URL}/{order['id']}"

        assert client.delete(url, headers=staff_headers, params={"hard": True}).status_code == 403

        response = client.delete(url, headers=admin_headers, params={"hard": True})
        assert response.status_code == 200
        assert db.query(Order).count() == 0


class TestManagerScoping:
    """A CAFE manager only sees CAFE orders."""

    def test_list_pinned_to_section(
        self,
        client: TestClient,
        manager_headers: dict,
        cafe_product: Product,
        book_product: Product
    ):
        _place(client, (cafe_product.id, 1))
        _place(client, (book_product.id, 1))

        response = client.get(ORDERS_URL, headers=manager_headers, params={"section": "BOOKS"})
        orders = response.json()["orders"]
        assert [o["section"] for o in orders] == ["CAFE"]

    def test_other_section_forbidden(
        self,
        client: TestClient,
        manager_headers: dict,
        book_product: Product
    ):
        order = _place(client, (book_product.id, 1))

        response = client.get(f"{ORDERS_URL}/{order['id']}", headers=manager_headers)
        assert response.status_code == 403
        assert response.json()["error"]["message"] == "You can only access CAFE section"

    def test_stats_pinned_to_section(
        self,
        client: TestClient,
        manager_headers: dict,
        cafe_product: Product,
        book_product: Product
    ):
        _place(client, (cafe_product.id, 1))
        _place(client, (book_product.id, 1))

        data = client.get(f"{ORDERS_URL}/stats", headers=manager_headers).json()
        assert data["overview"]["total_orders"] == 1
        assert data["by_section"]["BOOKS"]["orders"] == 0
