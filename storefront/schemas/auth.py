"""
==============================================================================
Authentication Schemas Module
==============================================================================

Request and response schemas for staff authentication endpoints.

==============================================================================
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from storefront.db.models import Section, UserRole
from storefront.schemas.common import LowerEmail


class LoginRequest(BaseModel):
    """Login credentials."""
    email: LowerEmail
    password: str = Field(..., min_length=1)


class RegisterRequest(BaseModel):
    """Staff account creation (admin only)."""
    email: LowerEmail
    password: str = Field(..., min_length=8, max_length=128)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    role: UserRole = Field(default=UserRole.STAFF)
    assigned_section: Optional[Section] = Field(default=None)


class UserInfo(BaseModel):
    """User info returned with tokens."""
    id: str
    email: str
    first_name: str
    last_name: str
    role: UserRole
    assigned_section: Optional[Section] = None

    class Config:
        from_attributes = True


class TokenResponse(BaseModel):
    """Token response after authentication."""
    success: bool = Field(default=True)
    access_token: str
    refresh_token: str
    token_type: str = Field(default="bearer")
    expires_in: int
    user: UserInfo


class RefreshRequest(BaseModel):
    """Token refresh or logout request."""
    refresh_token: str = Field(..., min_length=1)


class ChangePasswordRequest(BaseModel):
    """Password change request."""
    old_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=128)


class UserDetail(BaseModel):
    """Detailed staff user information."""
    id: str
    email: str
    first_name: str
    last_name: str
    role: UserRole
    assigned_section: Optional[Section] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class UserResponse(BaseModel):
    """Single user response."""
    success: bool = Field(default=True)
    user: UserDetail


class SessionInfo(BaseModel):
    """One active login session."""
    id: str
    created_at: datetime
    expires_at: datetime

    class Config:
        from_attributes = True


class SessionListResponse(BaseModel):
    success: bool = Field(default=True)
    sessions: List[SessionInfo]
    count: int
