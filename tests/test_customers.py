"""
==============================================================================
Customer Self-Service and Admin Customer Tests
==============================================================================
"""

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from storefront.db.models import Customer, CustomerRefreshToken, CustomerStatus, Product
from helpers import order_payload


def _order_as(client: TestClient, headers: dict, *items) -> dict:
    response = client.post(
        "/api/v1/orders",
        headers=headers,
        json=order_payload(*items, email="jane@example.com", name="Jane Doe")
    )
    assert response.status_code == 201, response.text
    return response.json()["order"]


def _login(client: TestClient, password: str = "Customer@123"):
    return client.post(
        "/api/v1/customer/auth/login",
        json={"email": "jane@example.com", "password": password}
    )


class TestCustomerProfile:

    def test_profile_with_statistics(
        self,
        client: TestClient,
        customer_headers: dict,
        cafe_product: Product,
        book_product: Product
    ):
        _order_as(client, customer_headers, (book_product.id, 1))
        _order_as(client, customer_headers, (book_product.id, 1), (cafe_product.id, 1))

        response = client.get("/api/v1/customer/profile", headers=customer_headers)
        assert response.status_code == 200
        statistics = response.json()["statistics"]
        assert statistics["total_orders"] == 2
        assert statistics["total_spent"] == 1416.0 + 1947.0
        assert statistics["favorite_section"] == "BOOKS"
        assert statistics["loyalty_tier"] == "bronze"
        assert statistics["days_since_last_order"] == 0
        assert statistics["top_products"][0] == {
            "product_id": book_product.id,
            "product_name": "Dune",
            "purchase_count": 2,
        }

    def test_statistics_without_orders(self, client: TestClient, customer_headers: dict):
        data = client.get("/api/v1/customer/statistics", headers=customer_headers).json()
        statistics = data["statistics"]
        assert statistics["total_orders"] == 0
        assert statistics["average_order_value"] == 0.0
        assert statistics["last_order_date"] is None
        assert statistics["favorite_section"] == "CAFE"
        assert statistics["top_products"] == []

    def test_update_profile(self, client: TestClient, customer_headers: dict):
        response = client.patch(
            "/api/v1/customer/profile",
            headers=customer_headers,
            json={"name": "Jane Q. Doe", "location": "Lahore"}
        )
        assert response.status_code == 200
        customer = response.json()["customer"]
        assert customer["name"] == "Jane Q. Doe"
        assert customer["location"] == "Lahore"

    def test_update_preferences(self, client: TestClient, customer_headers: dict):
        response = client.patch(
            "/api/v1/customer/preferences",
            headers=customer_headers,
            json={"marketing_consent": True, "email_preferences": {"newsletter": False}}
        )
        assert response.status_code == 200
        customer = response.json()["customer"]
        assert customer["marketing_consent"] is True
        assert customer["email_preferences"]["newsletter"] is False


class TestCustomerCredentials:

    def test_change_email(self, client: TestClient, db: Session, customer: Customer, customer_headers: dict):
        customer.email_verified = True
        db.commit()

        response = client.post(
            "/api/v1/customer/change-email",
            headers=customer_headers,
            json={"new_email": "Jane.New@example.com", "password": "Customer@123"}
        )
        assert response.status_code == 200
        updated = response.json()["customer"]
        assert updated["email"] == "jane.new@example.com"
        assert updated["email_verified"] is False

    def test_change_email_wrong_password(self, client: TestClient, customer_headers: dict):
        response = client.post(
            "/api/v1/customer/change-email",
            headers=customer_headers,
            json={"new_email": "jane.new@example.com", "password": "wrong"}
        )
        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Invalid password"

    def test_change_email_taken(self, client: TestClient, db: Session, customer_headers: dict):
        db.add(Customer(email="taken@example.com", name="Taken"))
        db.commit()

        response = client.post(
            "/api/v1/customer/change-email",
            headers=customer_headers,
            json={"new_email": "taken@example.com", "password": "Customer@123"}
        )
        assert response.status_code == 409
        assert response.json()["error"]["message"] == "Email already in use"

    def test_change_password_revokes_sessions(
        self,
        client: TestClient,
        db: Session,
        customer_headers: dict,
        email_outbox
    ):
        _login(client)

        response = client.post(
            "/api/v1/customer/change-password",
            headers=customer_headers,
            json={"current_password": "Customer@123", "new_password": "Changed@456"}
        )
        assert response.status_code == 200
        assert db.query(CustomerRefreshToken).count() == 0
        assert _login(client, "Changed@456").status_code == 200
        assert email_outbox.outbox[-1]["subject"] == "Your Password Has Been Changed - TRIO"

    def test_change_password_wrong_current(self, client: TestClient, customer_headers: dict):
        response = client.post(
            "/api/v1/customer/change-password",
            headers=customer_headers,
            json={"current_password": "nope", "new_password": "Changed@456"}
        )
        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Invalid current password"

    def test_change_password_weak(self, client: TestClient, customer_headers: dict):
        response = client.post(
            "/api/v1/customer/change-password",
            headers=customer_headers,
            json={"current_password": "Customer@123", "new_password": "short"}
        )
        assert response.status_code == 400

    def test_delete_account(self, client: TestClient, db: Session, customer: Customer, customer_headers: dict):
        response = client.request(
            "DELETE",
            "/api/v1/customer/account",
            headers=customer_headers,
            json={"password": "Customer@123"}
        )
        assert response.status_code == 200

        db.refresh(customer)
        assert customer.deleted_at is not None
        assert customer.status == CustomerStatus.INACTIVE

        assert client.get("/api/v1/customer/profile", headers=customer_headers).status_code == 401
        assert _login(client).status_code == 401


class TestCustomerOrders:

    def test_order_history(
        self,
        client: TestClient,
        customer_headers: dict,
        cafe_product: Product,
        book_product: Product
    ):
        _order_as(client, customer_headers, (cafe_product.id, 1))
        latest = _order_as(
            client, customer_headers,
            (cafe_product.id, 1), (book_product.id, 1)
        )

        response = client.get("/api/v1/customer/orders", headers=customer_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["pagination"]["total_items"] == 2
        first = data["orders"][0]
        assert first["id"] == latest["id"]
        assert first["items_count"] == 2
        assert [item["product_name"] for item in first["items_preview"]] == ["Cappuccino", "Dune"]

        books = client.get(
            "/api/v1/customer/orders",
            headers=customer_headers,
            params={"section": "BOOKS"}
        ).json()
        assert books["pagination"]["total_items"] == 0

    def test_checkout_with_account_email_lands_in_history(
        self,
        client: TestClient,
        customer_headers: dict,
        cafe_product: Product
    ):
        _order_as(client, {}, (cafe_product.id, 1))

        data = client.get("/api/v1/customer/orders", headers=customer_headers).json()
        assert data["pagination"]["total_items"] == 1

    def test_cannot_read_other_customers_order(
        self,
        client: TestClient,
        customer_headers: dict,
        cafe_product: Product
    ):
        guest = client.post(
            "/api/v1/orders",
            json=order_payload((cafe_product.id, 1), email="stranger@example.com")
        ).json()["order"]

        response = client.get(f"/api/v1/customer/orders/{guest['id']}", headers=customer_headers)
        assert response.status_code == 404


class TestAdminCustomers:
    """Tests for staff-side customer management."""

    def test_create_customer(self, client: TestClient, admin_headers: dict, email_outbox):
        response = client.post(
            "/api/v1/admin/customers",
            headers=admin_headers,
            json={
                "email": "Walkin@Example.com",
                "name": "Walk In",
                "customer_type": "VIP",
                "tags": ["regular"],
                "send_welcome_email": True
            }
        )
        assert response.status_code == 201
        customer = response.json()["customer"]
        assert customer["email"] == "walkin@example.com"
        assert customer["registration_source"] == "admin"
        assert email_outbox.sent_to("walkin@example.com")[0]["subject"] == "Welcome to TRIO!"

    def test_create_duplicate(self, client: TestClient, admin_headers: dict, customer: Customer):
        response = client.post(
            "/api/v1/admin/customers",
            headers=admin_headers,
            json={"email": "jane@example.com", "name": "Jane Again"}
        )
        assert response.status_code == 409
        assert response.json()["error"]["message"] == "Email already exists"

    def test_create_requires_admin(self, client: TestClient, staff_headers: dict):
        response = client.post(
            "/api/v1/admin/customers",
            headers=staff_headers,
            json={"email": "x@example.com", "name": "X"}
        )
        assert response.status_code == 403

    def test_list_with_statistics(
        self,
        client: TestClient,
        db: Session,
        staff_headers: dict,
        customer: Customer
    ):
        db.add(Customer(email="vip@example.com", name="Very Important", tags=["vip"]))
        db.add(Customer(
            email="blocked@example.com",
            name="Blocked",
            status=CustomerStatus.SUSPENDED
        ))
        db.commit()

        response = client.get("/api/v1/admin/customers", headers=staff_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["statistics"] == {
            "total_customers": 3,
            "active_customers": 2,
            "inactive_customers": 0,
            "suspended_customers": 1,
        }

        tagged = client.get(
            "/api/v1/admin/customers",
            headers=staff_headers,
            params={"tags": "vip"}
        ).json()
        assert [c["email"] for c in tagged["customers"]] == ["vip@example.com"]

        suspended = client.get(
            "/api/v1/admin/customers",
            headers=staff_headers,
            params={"status": "SUSPENDED"}
        ).json()
        assert suspended["pagination"]["total_items"] == 1

    def test_list_invalid_sort(self, client: TestClient, staff_headers: dict):
        response = client.get(
            "/api/v1/admin/customers",
            headers=staff_headers,
            params={"sort_by": "password_hash"}
        )
        assert response.status_code == 400

    def test_update_suspends_customer(
        self,
        client: TestClient,
        admin_headers: dict,
        customer: Customer,
        customer_headers: dict
    ):
        response = client.patch(
            f"/api/v1/admin/customers/{customer.id}",
            headers=admin_headers,
            json={"status": "SUSPENDED", "notes": "Chargeback"}
        )
        assert response.status_code == 200
        assert response.json()["customer"]["status"] == "SUSPENDED"

        assert client.get("/api/v1/customer/profile", headers=customer_headers).status_code == 403

    def test_get_unknown(self, client: TestClient, staff_headers: dict):
        response = client.get("/api/v1/admin/customers/missing", headers=staff_headers)
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "CUSTOMER_NOT_FOUND"

    def test_customer_orders_and_statistics(
        self,
        client: TestClient,
        staff_headers: dict,
        customer: Customer,
        customer_headers: dict,
        cafe_product: Product
    ):
        _order_as(client, customer_headers, (cafe_product.id, 2))

        orders = client.get(
            f"/api/v1/admin/customers/{customer.id}/orders",
            headers=staff_headers
        ).json()
        assert orders["pagination"]["total_items"] == 1

        statistics = client.get(
            f"/api/v1/admin/customers/{customer.id}/statistics",
            headers=staff_headers
        ).json()["statistics"]
        assert statistics["total_spent"] == 1062.0
