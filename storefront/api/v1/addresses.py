"""
==============================================================================
Customer Address Endpoints
==============================================================================

Address book of the signed-in customer.

==============================================================================
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from storefront.core.dependencies import get_current_customer
from storefront.db.database import get_db
from storefront.db.models import Customer
from storefront.schemas.address import (
    AddressCreate,
    AddressDetail,
    AddressListResponse,
    AddressResponse,
    AddressUpdate,
    SetDefaultRequest,
)
from storefront.schemas.common import MessageResponse
from storefront.services.customer_address_service import CustomerAddressService


router = APIRouter(prefix="/customer/addresses", tags=["Customer Addresses"])


class AddressController:
    """Controller for address book operations."""

    def __init__(self, db: Session, customer: Customer):
        self._service = CustomerAddressService(db)
        self._customer_id = customer.id

    def list(self) -> AddressListResponse:
        result = self._service.list_addresses(self._customer_id)
        return AddressListResponse.model_validate(result, from_attributes=True)

    def get(self, address_id: str) -> AddressResponse:
        address = self._service.get_address(self._customer_id, address_id)
        return AddressResponse(address=AddressDetail.model_validate(address))

    def create(self, request: AddressCreate) -> AddressResponse:
        address = self._service.create_address(self._customer_id, request)
        return AddressResponse(address=AddressDetail.model_validate(address))

    def update(self, address_id: str, request: AddressUpdate) -> AddressResponse:
        address = self._service.update_address(self._customer_id, address_id, request)
        return AddressResponse(address=AddressDetail.model_validate(address))

    def delete(self, address_id: str) -> MessageResponse:
        self._service.delete_address(self._customer_id, address_id)
        return MessageResponse(message="Address deleted successfully")

    def set_default(self, address_id: str, request: SetDefaultRequest) -> AddressResponse:
        address = self._service.set_default_address(self._customer_id, address_id, request.type)
        return AddressResponse(address=AddressDetail.model_validate(address))


@router.get("", response_model=AddressListResponse)
async def list_addresses(
    customer: Customer = Depends(get_current_customer),
    db: Session = Depends(get_db)
):
    """All addresses, newest first, plus the default shipping and billing ones."""
    return AddressController(db, customer).list()


@router.post("", response_model=AddressResponse, status_code=status.HTTP_201_CREATED)
async def create_address(
    request: AddressCreate,
    customer: Customer = Depends(get_current_customer),
    db: Session = Depends(get_db)
):
    return AddressController(db, customer).create(request)


@router.get("/{address_id}", response_model=AddressResponse)
async def get_address(
    address_id: str,
    customer: Customer = Depends(get_current_customer),
    db: Session = Depends(get_db)
):
    return AddressController(db, customer).get(address_id)


@router.patch("/{address_id}", response_model=AddressResponse)
async def update_address(
    address_id: str,
    request: AddressUpdate,
    customer: Customer = Depends(get_current_customer),
    db: Session = Depends(get_db)
):
    return AddressController(db, customer).update(address_id, request)


@router.delete("/{address_id}", response_model=MessageResponse)
async def delete_address(
    address_id: str,
    customer: Customer = Depends(get_current_customer),
    db: Session = Depends(get_db)
):
    """Delete an address; the only remaining address cannot be deleted."""
    return AddressController(db, customer).delete(address_id)


@router.post("/{address_id}/set-default", response_model=AddressResponse)
async def set_default_address(
    address_id: str,
    request: SetDefaultRequest = SetDefaultRequest(),
    customer: Customer = Depends(get_current_customer),
    db: Session = Depends(get_db)
):
    return AddressController(db, customer).set_default(address_id, request)
