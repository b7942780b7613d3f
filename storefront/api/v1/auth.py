"""
==============================================================================
Staff Authentication Endpoints
==============================================================================

Staff login, token rotation, sessions and password management.

==============================================================================
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from storefront.core.dependencies import get_current_user, require_admin
from storefront.db.database import get_db
from storefront.db.models import User
from storefront.schemas.auth import (
    ChangePasswordRequest,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    SessionInfo,
    SessionListResponse,
    TokenResponse,
    UserDetail,
    UserInfo,
    UserResponse,
)
from storefront.schemas.common import MessageResponse
from storefront.services.auth_service import AuthService


router = APIRouter(prefix="/auth", tags=["Authentication"])


class AuthController:
    """Controller for staff authentication operations."""

    def __init__(self, db: Session):
        self._service = AuthService(db)

    def _token_response(self, user: User, access_token: str, refresh_token: str) -> TokenResponse:
        return TokenResponse(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=self._service.get_token_expiry_seconds(),
            user=UserInfo.model_validate(user)
        )

    def register(self, request: RegisterRequest) -> UserResponse:
        user = self._service.register(request)
        return UserResponse(user=UserDetail.model_validate(user))

    def login(self, request: LoginRequest) -> TokenResponse:
        """Authenticate user and generate tokens."""
        return self._token_response(*self._service.login(request.email, request.password))

    def refresh(self, request: RefreshRequest) -> TokenResponse:
        """Rotate the refresh token."""
        return self._token_response(*self._service.refresh(request.refresh_token))

    def logout(self, request: RefreshRequest) -> MessageResponse:
        self._service.logout(request.refresh_token)
        return MessageResponse(message="Logged out successfully")

    def logout_all(self, user: User) -> MessageResponse:
        count = self._service.logout_all(user.id)
        return MessageResponse(message=f"Logged out from {count} sessions")

    def sessions(self, user: User) -> SessionListResponse:
        sessions = self._service.get_active_sessions(user.id)
        return SessionListResponse(
            sessions=[SessionInfo.model_validate(s) for s in sessions],
            count=len(sessions)
        )

    def change_password(self, user: User, request: ChangePasswordRequest) -> MessageResponse:
        self._service.change_password(user, request.old_password, request.new_password)
        return MessageResponse(message="Password changed successfully")


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Create a staff account (admin only)."""
    controller = AuthController(db)
    return controller.register(request)


@router.post("/login", response_model=TokenResponse)
async def login(request: LoginRequest, db: Session = Depends(get_db)):
    """Authenticate user and get tokens."""
    controller = AuthController(db)
    return controller.login(request)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(request: RefreshRequest, db: Session = Depends(get_db)):
    """
    Exchange a refresh token for a new token pair.

    The presented refresh token is consumed. Presenting it again revokes
    every session of the user.
    """
    controller = AuthController(db)
    return controller.refresh(request)


@router.post("/logout", response_model=MessageResponse)
async def logout(request: RefreshRequest, db: Session = Depends(get_db)):
    controller = AuthController(db)
    return controller.logout(request)


@router.post("/logout-all", response_model=MessageResponse)
async def logout_all(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """End every session of the current user."""
    controller = AuthController(db)
    return controller.logout_all(user)


@router.get("/sessions", response_model=SessionListResponse)
async def list_sessions(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    controller = AuthController(db)
    return controller.sessions(user)


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(user: User = Depends(get_current_user)):
    """Get current authenticated user information."""
    return UserResponse(user=UserDetail.model_validate(user))


@router.put("/change-password", response_model=MessageResponse)
async def change_password(
    request: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Change current user's password."""
    controller = AuthController(db)
    return controller.change_password(user, request)
