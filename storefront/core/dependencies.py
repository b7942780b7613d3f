"""
==============================================================================
FastAPI Dependencies Module
==============================================================================

Dependency injection for authentication and authorization.

Two independent identities reach the API:

- Staff users (admin / manager / staff) with ``access`` tokens
- Customers with ``customer`` tokens, optional on checkout

Dependency Hierarchy:
--------------------
                 ┌──────────┐
                 │ get_db() │
                 └────┬─────┘
          ┌───────────┴─────────────┐
┌─────────▼────────┐     ┌──────────▼───────────┐
│ get_current_user │     │ get_current_customer │
└─────────┬────────┘     └──────────────────────┘
          │
  ┌───────┴──────────────┐
┌─▼─────────────┐ ┌──────▼──────────────┐
│ require_admin │ │ require_catalog_... │
└───────────────┘ └─────────────────────┘

Usage Examples:
--------------
    @router.get("/orders")
    async def list_orders(user: User = Depends(get_current_user)):
        ...

    @router.post("/orders")
    async def create_order(
        customer: Optional[Customer] = Depends(get_current_customer_optional)
    ):
        ...

==============================================================================
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError
from sqlalchemy.orm import Session

from storefront.core import exceptions
from storefront.core.security import SecurityManager, get_security_manager
from storefront.db.database import get_db
from storefront.db.models import Customer, CustomerStatus, Section, User, UserRole


logger = logging.getLogger(__name__)

security_scheme = HTTPBearer(auto_error=False)


class AuthenticationManager:
    """
    Resolves staff users from bearer tokens and enforces roles.

    Example:
        >>> auth = AuthenticationManager(security_manager, db_session)
        >>> user = await auth.get_current_user(credentials)
        >>> auth.require_role(user, UserRole.ADMIN)
    """

    def __init__(
        self,
        security: SecurityManager,
        db: Optional[Session]
    ) -> None:
        self._security = security
        self._db = db

    # =========================================================================
    # TOKEN EXTRACTION METHODS
    # =========================================================================

    def extract_token_from_header(
        self,
        credentials: Optional[HTTPAuthorizationCredentials]
    ) -> str:
        """
        Extract JWT token from HTTP Authorization header.

        Raises:
            AppException: If no credentials provided
        """
        if not credentials:
            logger.debug("No authorization credentials provided")
            raise exceptions.unauthorized("No token provided")

        return credentials.credentials

    # =========================================================================
    # USER AUTHENTICATION METHODS
    # =========================================================================

    async def authenticate_from_token(
        self,
        token: str,
        token_type: str = SecurityManager.TOKEN_TYPE_ACCESS
    ) -> User:
        """
        Authenticate a staff user from a JWT token.

        1. Verifies the token signature, expiration and type
        2. Loads the user named by the 'sub' claim
        3. Rejects inactive users

        Raises:
            AppException: If token is invalid, expired, or user not found
        """
        try:
            payload = self._security.decode_token(token, token_type)
        except ExpiredSignatureError:
            raise exceptions.token_expired()
        except JWTError:
            raise exceptions.token_invalid()

        user_id = payload.get("sub")

        if not user_id:
            logger.warning("Token payload missing 'sub' claim")
            raise exceptions.token_invalid()

        user = self._db.query(User).filter(User.id == user_id).first()

        if not user:
            logger.warning(f"User not found for token: {user_id}")
            raise exceptions.unauthorized("User not found")

        if not user.is_active:
            logger.warning(f"Disabled user attempted access: {user.email}")
            raise exceptions.account_disabled()

        return user

    async def get_current_user(
        self,
        credentials: Optional[HTTPAuthorizationCredentials]
    ) -> User:
        token = self.extract_token_from_header(credentials)
        return await self.authenticate_from_token(token)

    # =========================================================================
    # ROLE-BASED ACCESS CONTROL METHODS
    # =========================================================================

    def require_role(self, user: User, *allowed_roles: UserRole) -> User:
        """
        Verify user has one of the allowed roles.

        Raises:
            AppException: FORBIDDEN if the role is not allowed
        """
        if user.role not in allowed_roles:
            logger.warning(
                f"Role check failed for {user.email}: "
                f"has {user.role.value}, needs {[r.value for r in allowed_roles]}"
            )
            raise exceptions.forbidden("Insufficient permissions")

        return user

    @staticmethod
    def require_section(user: User, section: Optional[Section]) -> None:
        """
        Verify the user may touch data of the given section.

        Admins reach every section; a manager with an assigned section only
        reaches that one.

        Raises:
            AppException: FORBIDDEN naming the manager's section
        """
        if not user.can_access_section(section):
            raise exceptions.section_forbidden(user.assigned_section.value)


class CustomerAuthenticationManager:
    """Resolves storefront customers from customer tokens."""

    def __init__(self, security: SecurityManager, db: Session) -> None:
        self._security = security
        self._db = db

    async def authenticate(self, credentials: Optional[HTTPAuthorizationCredentials]) -> Customer:
        """
        Authenticate a customer.

        Raises:
            AppException: 401 for missing, expired or invalid tokens and
                unknown customers; 403 for suspended or inactive accounts
        """
        if not credentials:
            raise exceptions.unauthorized("No token provided")

        try:
            payload = self._security.decode_token(
                credentials.credentials,
                SecurityManager.TOKEN_TYPE_CUSTOMER
            )
        except ExpiredSignatureError:
            raise exceptions.token_expired()
        except JWTError as e:
            if str(e) == "Invalid token type":
                raise exceptions.unauthorized("Invalid token type")
            raise exceptions.token_invalid()

        customer = self._db.query(Customer).filter(
            Customer.id == payload.get("sub"),
            Customer.deleted_at.is_(None)
        ).first()

        if not customer:
            raise exceptions.unauthorized("Customer not found")

        if customer.status == CustomerStatus.SUSPENDED:
            raise exceptions.account_disabled("Account suspended. Please contact support.")

        if customer.status == CustomerStatus.INACTIVE:
            raise exceptions.account_disabled(
                "Account inactive. Please reactivate your account."
            )

        return customer

    async def authenticate_optional(
        self,
        credentials: Optional[HTTPAuthorizationCredentials]
    ) -> Optional[Customer]:
        """Return the active customer behind the token, or None."""
        if not credentials:
            return None

        payload = self._security.verify_token(
            credentials.credentials,
            SecurityManager.TOKEN_TYPE_CUSTOMER
        )
        if not payload:
            return None

        return self._db.query(Customer).filter(
            Customer.id == payload.get("sub"),
            Customer.deleted_at.is_(None),
            Customer.status == CustomerStatus.ACTIVE
        ).first()


# =============================================================================
# FASTAPI DEPENDENCY FUNCTIONS
# =============================================================================

async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
    db: Session = Depends(get_db)
) -> User:
    """FastAPI dependency returning the authenticated staff user."""
    auth_manager = AuthenticationManager(get_security_manager(), db)
    return await auth_manager.get_current_user(credentials)


async def require_admin(
    user: User = Depends(get_current_user)
) -> User:
    """FastAPI dependency requiring the ADMIN role."""
    auth_manager = AuthenticationManager(get_security_manager(), None)
    return auth_manager.require_role(user, UserRole.ADMIN)


async def require_catalog_manager(
    user: User = Depends(get_current_user)
) -> User:
    """FastAPI dependency requiring ADMIN or MANAGER."""
    auth_manager = AuthenticationManager(get_security_manager(), None)
    return auth_manager.require_role(user, UserRole.ADMIN, UserRole.MANAGER)


async def get_current_customer(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
    db: Session = Depends(get_db)
) -> Customer:
    """FastAPI dependency returning the authenticated customer."""
    auth_manager = CustomerAuthenticationManager(get_security_manager(), db)
    return await auth_manager.authenticate(credentials)


async def get_current_customer_optional(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
    db: Session = Depends(get_db)
) -> Optional[Customer]:
    """
    FastAPI dependency for endpoints open to guests.

    Returns None instead of raising when no valid customer token is sent.
    """
    auth_manager = CustomerAuthenticationManager(get_security_manager(), db)
    return await auth_manager.authenticate_optional(credentials)
