"""
==============================================================================
Customer Address Schemas Module
==============================================================================
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from storefront.db.models import AddressLabel


class AddressCreate(BaseModel):
    """New saved address."""
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    company: Optional[str] = Field(default=None, max_length=200)
    address_line1: str = Field(..., min_length=1, max_length=255)
    address_line2: Optional[str] = Field(default=None, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    state: Optional[str] = Field(default=None, max_length=100)
    postal_code: Optional[str] = Field(default=None, max_length=20)
    country: str = Field(default="Pakistan", min_length=1, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=50)
    is_default: bool = False
    is_default_billing: bool = False
    label: AddressLabel = AddressLabel.HOME


class AddressUpdate(BaseModel):
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    company: Optional[str] = Field(default=None, max_length=200)
    address_line1: Optional[str] = Field(default=None, min_length=1, max_length=255)
    address_line2: Optional[str] = Field(default=None, max_length=255)
    city: Optional[str] = Field(default=None, min_length=1, max_length=100)
    state: Optional[str] = Field(default=None, max_length=100)
    postal_code: Optional[str] = Field(default=None, max_length=20)
    country: Optional[str] = Field(default=None, min_length=1, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=50)
    is_default: Optional[bool] = None
    is_default_billing: Optional[bool] = None
    label: Optional[AddressLabel] = None


class DefaultAddressType(str, Enum):
    SHIPPING = "shipping"
    BILLING = "billing"


class SetDefaultRequest(BaseModel):
    type: DefaultAddressType = DefaultAddressType.SHIPPING


class AddressDetail(BaseModel):
    id: str
    customer_id: str
    first_name: str
    last_name: str
    company: Optional[str] = None
    address_line1: str
    address_line2: Optional[str] = None
    city: str
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: str
    phone: Optional[str] = None
    is_default: bool
    is_default_billing: bool
    label: AddressLabel
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class AddressResponse(BaseModel):
    success: bool = Field(default=True)
    address: AddressDetail


class AddressListResponse(BaseModel):
    success: bool = Field(default=True)
    addresses: List[AddressDetail]
    default_shipping: Optional[AddressDetail] = None
    default_billing: Optional[AddressDetail] = None
