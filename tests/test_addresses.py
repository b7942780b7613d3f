"""
==============================================================================
Customer Address Tests
==============================================================================
"""

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from storefront.core.security import get_security_manager
from storefront.db.models import Customer
from helpers import address_payload


ADDRESSES_URL = "/api/v1/customer/addresses"


def _create(client: TestClient, headers: dict, **overrides) -> dict:
    response = client.post(ADDRESSES_URL, headers=headers, json=address_payload(**overrides))
    assert response.status_code == 201, response.text
    return response.json()["address"]


class TestAddressBook:
    """Tests for address CRUD and default flags."""

    def test_requires_customer(self, client: TestClient, admin_headers: dict):
        assert client.get(ADDRESSES_URL).status_code == 401
        assert client.get(ADDRESSES_URL, headers=admin_headers).status_code == 401

    def test_create_and_list(self, client: TestClient, customer_headers: dict):
        home = _create(client, customer_headers, is_default=True)
        work = _create(client, customer_headers, label="work", address_line1="1 Office Park")

        assert home["country"] == "Pakistan"
        assert work["label"] == "work"

        data = client.get(ADDRESSES_URL, headers=customer_headers).json()
        assert [a["id"] for a in data["addresses"]] == [work["id"], home["id"]]
        assert data["default_shipping"]["id"] == home["id"]
        assert data["default_billing"] is None

    def test_single_default_per_kind(self, client: TestClient, customer_headers: dict):
        first = _create(client, customer_headers, is_default=True, is_default_billing=True)
        second = _create(client, customer_headers, is_default=True)

        data = client.get(ADDRESSES_URL, headers=customer_headers).json()
        assert data["default_shipping"]["id"] == second["id"]
        assert data["default_billing"]["id"] == first["id"]
        assert sum(a["is_default"] for a in data["addresses"]) == 1

    def test_set_default_billing(self, client: TestClient, customer_headers: dict):
        first = _create(client, customer_headers, is_default_billing=True)
        second = _create(client, customer_headers)

        response = client.post(
            f"{ADDRESSES_URL}/{second['id']}/set-default",
            headers=customer_headers,
            json={"type": "billing"}
        )
        assert response.status_code == 200
        assert response.json()["address"]["is_default_billing"] is True

        refreshed = client.get(f"{ADDRESSES_URL}/{first['id']}", headers=customer_headers).json()
        assert refreshed["address"]["is_default_billing"] is False

    def test_set_default_without_body_means_shipping(self, client: TestClient, customer_headers: dict):
        address = _create(client, customer_headers)

        response = client.post(f"{ADDRESSES_URL}/{address['id']}/set-default", headers=customer_headers)
        assert response.status_code == 200
        assert response.json()["address"]["is_default"] is True

    def test_update(self, client: TestClient, customer_headers: dict):
        address = _create(client, customer_headers, address_line2="Flat 4")

        response = client.patch(
            f"{ADDRESSES_URL}/{address['id']}",
            headers=customer_headers,
            json={"city": "Karachi", "address_line2": None}
        )
        assert response.status_code == 200
        updated = response.json()["address"]
        assert updated["city"] == "Karachi"
        assert updated["address_line2"] is None
        assert updated["first_name"] == "Jane"

    def test_cannot_delete_only_address(self, client: TestClient, customer_headers: dict):
        address = _create(client, customer_headers)

        response = client.delete(f"{ADDRESSES_URL}/{address['id']}", headers=customer_headers)
        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Cannot delete the only address"

    def test_delete_hands_default_to_newest(self, client: TestClient, customer_headers: dict):
        default = _create(client, customer_headers, is_default=True)
        older = _create(client, customer_headers, address_line1="2 Older St")
        newest = _create(client, customer_headers, address_line1="3 Newest St")

        response = client.delete(f"{ADDRESSES_URL}/{default['id']}", headers=customer_headers)
        assert response.status_code == 200

        data = client.get(ADDRESSES_URL, headers=customer_headers).json()
        assert data["default_shipping"]["id"] == newest["id"]
        assert {a["id"] for a in data["addresses"]} == {older["id"], newest["id"]}

    def test_other_customers_address_is_not_found(
        self,
        client: TestClient,
        db: Session,
        customer_headers: dict
    ):
        address = _create(client, customer_headers)

        other = Customer(email="other@example.com", name="Other Person")
        db.add(other)
        db.commit()
        other_token = get_security_manager().create_customer_access_token({
            "sub": other.id,
            "email": other.email
        })

        response = client.get(
            f"{ADDRESSES_URL}/{address['id']}",
            headers={"Authorization": f"Bearer {other_token}"}
        )
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "ADDRESS_NOT_FOUND"
