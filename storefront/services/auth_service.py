"""
==============================================================================
Authentication Service Module
==============================================================================

Staff authentication: login, registration, refresh-token rotation and
session management.

Every login stores its refresh token, so a stored row is a session. The
number of sessions per user is capped; the oldest sessions are evicted
first.

Refresh Rotation:
----------------
    ┌──────────────┐     ┌─────────────────┐
    │ Verify JWT   │────▶│ Bad signature / │ → Invalid refresh token
    └──────┬───────┘     │ expired / type  │
           │             └─────────────────┘
    ┌──────▼───────┐     ┌─────────────────┐
    │ Find stored  │────▶│ Not stored      │ → revoke ALL sessions of sub
    │ row          │     │ (reuse)         │   + Invalid refresh token
    └──────┬───────┘     └─────────────────┘
           │             ┌─────────────────┐
           ├────────────▶│ Row expired     │ → delete row
           │             └─────────────────┘   + Refresh token expired
    ┌──────▼───────┐
    │ Delete old,  │  one transaction
    │ insert new   │
    └──────────────┘

==============================================================================
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from storefront.config import get_settings
from storefront.core import exceptions
from storefront.core.security import SecurityManager, get_security_manager
from storefront.db.models import RefreshToken, User
from storefront.schemas.auth import RegisterRequest
from storefront.utils.clock import utc_now


logger = logging.getLogger(__name__)


class AuthService:
    """
    Authentication service for staff users.

    Attributes:
        _db: Database session for user queries
        _security: SecurityManager for crypto operations
        _settings: Application settings

    Example:
        >>> auth_service = AuthService(db_session)
        >>> user, access, refresh = auth_service.login("admin@example.com", "Admin@12345")
        >>> user, access, refresh = auth_service.refresh(refresh)
        >>> auth_service.logout(refresh)
    """

    def __init__(
        self,
        db: Session,
        security: Optional[SecurityManager] = None
    ) -> None:
        self._db = db
        self._security = security or get_security_manager()
        self._settings = get_settings()

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def register(self, data: RegisterRequest) -> User:
        """
        Create a staff account.

        Raises:
            AppException: VALIDATION_ERROR if the email is already registered
        """
        existing = self._db.query(User).filter(User.email == data.email).first()
        if existing:
            raise exceptions.validation_error(
                "User with this email already exists",
                {"email": data.email}
            )

        user = User(
            email=data.email,
            password_hash=self._security.hash_password(data.password),
            first_name=data.first_name.strip(),
            last_name=data.last_name.strip(),
            role=data.role,
            assigned_section=data.assigned_section,
            is_active=True
        )

        self._db.add(user)
        self._db.commit()
        self._db.refresh(user)

        logger.info(f"✅ Staff user registered: {user.email} ({user.role.value})")

        return user

    # =========================================================================
    # AUTHENTICATION METHODS
    # =========================================================================

    def login(self, email: str, password: str) -> Tuple[User, str, str]:
        """
        Authenticate a staff user and open a new session.

        Returns:
            Tuple of (User, access_token, refresh_token)

        Raises:
            AppException: UNAUTHORIZED for bad credentials or an inactive account
        """
        normalized_email = email.strip().lower()

        user = self._db.query(User).filter(User.email == normalized_email).first()

        if not user:
            logger.warning(f"Login failed: user not found - {normalized_email}")
            raise exceptions.invalid_credentials()

        if not self._security.verify_password(password, user.password_hash):
            logger.warning(f"Login failed: invalid password - {normalized_email}")
            raise exceptions.invalid_credentials()

        if not user.is_active:
            logger.warning(f"Login failed: account inactive - {normalized_email}")
            raise exceptions.unauthorized("Account is inactive")

        self._enforce_session_limit(user.id)

        access_token, refresh_token = self._generate_tokens(user)
        self._store_refresh_token(user.id, refresh_token)
        self._db.commit()

        logger.info(f"✅ User authenticated: {user.email}")

        return user, access_token, refresh_token

    def refresh(self, refresh_token: str) -> Tuple[User, str, str]:
        """
        Exchange a refresh token for a new token pair.

        The presented token is consumed: its row is deleted and a new row is
        stored in the same transaction. A token that verifies but is no
        longer stored has already been used, so every session of its subject
        is revoked.

        Raises:
            AppException: UNAUTHORIZED for invalid, reused or expired tokens
        """
        payload = self._security.verify_token(
            refresh_token,
            SecurityManager.TOKEN_TYPE_REFRESH
        )
        if not payload:
            raise exceptions.invalid_refresh_token()

        user_id = payload.get("sub")

        stored = self._db.query(RefreshToken).filter(
            RefreshToken.token == refresh_token
        ).first()

        if not stored or stored.user_id != user_id:
            if user_id:
                revoked = self._db.query(RefreshToken).filter(
                    RefreshToken.user_id == user_id
                ).delete(synchronize_session=False)
                self._db.commit()
                logger.warning(
                    f"⚠️ Refresh token reuse detected for user {user_id}, "
                    f"revoked {revoked} sessions"
                )
            raise exceptions.invalid_refresh_token()

        if stored.is_expired:
            self._db.delete(stored)
            self._db.commit()
            raise exceptions.unauthorized("Refresh token expired")

        user = self._db.query(User).filter(User.id == user_id).first()

        if not user or not user.is_active:
            self._db.delete(stored)
            self._db.commit()
            logger.warning(f"Token refresh failed: user unavailable - {user_id}")
            raise exceptions.invalid_refresh_token()

        access_token, new_refresh_token = self._generate_tokens(user)

        try:
            self._db.delete(stored)
            self._store_refresh_token(user.id, new_refresh_token)
            self._db.commit()
        except Exception:
            self._db.rollback()
            raise

        logger.info(f"✅ Tokens refreshed for: {user.email}")

        return user, access_token, new_refresh_token

    # =========================================================================
    # SESSION MANAGEMENT
    # =========================================================================

    def logout(self, refresh_token: str) -> None:
        """End one session. Unknown tokens are ignored."""
        deleted = self._db.query(RefreshToken).filter(
            RefreshToken.token == refresh_token
        ).delete(synchronize_session=False)
        self._db.commit()

        if deleted:
            logger.info("👋 Session logged out")

    def logout_all(self, user_id: str) -> int:
        """
        End every session of a user.

        Returns:
            Number of sessions revoked
        """
        deleted = self._db.query(RefreshToken).filter(
            RefreshToken.user_id == user_id
        ).delete(synchronize_session=False)
        self._db.commit()

        logger.info(f"👋 Logged out {deleted} sessions for user {user_id}")

        return deleted

    def get_active_sessions(self, user_id: str) -> List[RefreshToken]:
        """Non-expired sessions, newest first."""
        return self._db.query(RefreshToken).filter(
            RefreshToken.user_id == user_id,
            RefreshToken.expires_at > utc_now()
        ).order_by(RefreshToken.created_at.desc()).all()

    # =========================================================================
    # PASSWORD MANAGEMENT
    # =========================================================================

    def change_password(
        self,
        user: User,
        old_password: str,
        new_password: str
    ) -> User:
        """
        Change a user's password.

        Raises:
            AppException: UNAUTHORIZED if the current password is wrong
        """
        if not self._security.verify_password(old_password, user.password_hash):
            logger.warning(f"Password change failed: invalid current password - {user.email}")
            raise exceptions.unauthorized("Invalid current password")

        user.password_hash = self._security.hash_password(new_password)

        self._db.commit()
        self._db.refresh(user)

        logger.info(f"✅ Password changed for: {user.email}")

        return user

    # =========================================================================
    # TOKEN HELPERS
    # =========================================================================

    def _generate_tokens(self, user: User) -> Tuple[str, str]:
        token_data = {
            "sub": user.id,
            "email": user.email,
            "role": user.role.value
        }

        access_token = self._security.create_access_token(token_data)
        refresh_token = self._security.create_refresh_token({"sub": user.id})

        return access_token, refresh_token

    def _store_refresh_token(self, user_id: str, token: str) -> RefreshToken:
        row = RefreshToken(
            token=token,
            user_id=user_id,
            expires_at=utc_now() + timedelta(days=self._settings.refresh_token_expire_days)
        )
        self._db.add(row)
        return row

    def _enforce_session_limit(self, user_id: str) -> None:
        """
        Make room for one more session.

        Drops expired rows, then evicts the oldest sessions so that after
        the new token is stored the user holds at most the configured
        maximum.
        """
        self._db.query(RefreshToken).filter(
            RefreshToken.user_id == user_id,
            RefreshToken.expires_at <= utc_now()
        ).delete(synchronize_session=False)

        tokens = self._db.query(RefreshToken).filter(
            RefreshToken.user_id == user_id
        ).order_by(RefreshToken.created_at.desc()).all()

        limit = self._settings.max_active_sessions_per_user
        if len(tokens) >= limit:
            evicted = tokens[limit - 1:]
            for token in evicted:
                self._db.delete(token)
            logger.info(f"Session limit reached for user {user_id}, evicted {len(evicted)}")

    def get_token_expiry_seconds(self) -> int:
        return self._security.get_access_token_expire_seconds()
