"""
==============================================================================
Customer Address Service Module
==============================================================================

Saved addresses of a customer.

A customer has at most one default shipping address (``is_default``) and
at most one default billing address (``is_default_billing``); setting
either flag on one address clears it on the others.

==============================================================================
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from storefront.core import exceptions
from storefront.db.models import CustomerAddress
from storefront.schemas.address import AddressCreate, AddressUpdate, DefaultAddressType


logger = logging.getLogger(__name__)


DEFAULT_FLAGS = {
    DefaultAddressType.SHIPPING: "is_default",
    DefaultAddressType.BILLING: "is_default_billing",
}


class CustomerAddressService:
    """
    CRUD for a customer's address book.

    Every method is scoped to one customer; another customer's address is
    reported as not found.
    """

    def __init__(self, db: Session) -> None:
        self._db = db

    def _addresses(self, customer_id: str):
        return self._db.query(CustomerAddress).filter(
            CustomerAddress.customer_id == customer_id
        )

    def _clear_flag(self, customer_id: str, flag: str, keep_id: Optional[str] = None) -> None:
        query = self._addresses(customer_id).filter(getattr(CustomerAddress, flag).is_(True))
        if keep_id:
            query = query.filter(CustomerAddress.id != keep_id)
        query.update({flag: False}, synchronize_session="fetch")

    def list_addresses(self, customer_id: str) -> Dict[str, Any]:
        """
        Returns:
            Dict with addresses (newest first), default_shipping and
            default_billing
        """
        addresses: List[CustomerAddress] = self._addresses(customer_id).order_by(
            CustomerAddress.created_at.desc()
        ).all()

        return {
            "addresses": addresses,
            "default_shipping": next((a for a in addresses if a.is_default), None),
            "default_billing": next((a for a in addresses if a.is_default_billing), None),
        }

    def get_address(self, customer_id: str, address_id: str) -> CustomerAddress:
        address = self._addresses(customer_id).filter(CustomerAddress.id == address_id).first()

        if not address:
            raise exceptions.not_found("Address", address_id)

        return address

    def create_address(self, customer_id: str, data: AddressCreate) -> CustomerAddress:
        if data.is_default:
            self._clear_flag(customer_id, "is_default")
        if data.is_default_billing:
            self._clear_flag(customer_id, "is_default_billing")

        address = CustomerAddress(customer_id=customer_id, **data.model_dump())
        self._db.add(address)
        self._db.commit()
        self._db.refresh(address)

        logger.info(f"✅ Address created for customer {customer_id}: {address.id}")

        return address

    def update_address(
        self,
        customer_id: str,
        address_id: str,
        data: AddressUpdate
    ) -> CustomerAddress:
        address = self.get_address(customer_id, address_id)

        if data.is_default is True:
            self._clear_flag(customer_id, "is_default", keep_id=address.id)
        if data.is_default_billing is True:
            self._clear_flag(customer_id, "is_default_billing", keep_id=address.id)

        nullable = {"company", "address_line2", "state", "postal_code", "phone"}
        for field, value in data.model_dump(exclude_unset=True).items():
            if value is None and field not in nullable:
                continue
            setattr(address, field, value)

        self._db.commit()
        self._db.refresh(address)

        logger.info(f"Address updated: {address_id}")

        return address

    def delete_address(self, customer_id: str, address_id: str) -> None:
        """
        Delete an address, handing its default flags to the newest remaining
        address.

        Raises:
            AppException: VALIDATION_ERROR when it is the customer's only address
        """
        address = self.get_address(customer_id, address_id)

        if self._addresses(customer_id).count() == 1:
            raise exceptions.validation_error("Cannot delete the only address")

        successor = self._addresses(customer_id).filter(
            CustomerAddress.id != address.id
        ).order_by(CustomerAddress.created_at.desc()).first()

        if address.is_default:
            successor.is_default = True
        if address.is_default_billing:
            successor.is_default_billing = True

        self._db.delete(address)
        self._db.commit()

        logger.info(f"🗑️ Address deleted: {address_id}")

    def set_default_address(
        self,
        customer_id: str,
        address_id: str,
        address_type: DefaultAddressType = DefaultAddressType.SHIPPING
    ) -> CustomerAddress:
        address = self.get_address(customer_id, address_id)
        flag = DEFAULT_FLAGS[address_type]

        self._clear_flag(customer_id, flag, keep_id=address.id)
        setattr(address, flag, True)

        self._db.commit()
        self._db.refresh(address)

        logger.info(f"Default {address_type.value} address set: {address_id}")

        return address
