"""
==============================================================================
Security Module - Authentication & Cryptography
==============================================================================

JWT token management and password hashing for the three token families
used by the storefront:

- Staff: ``access`` (jwt_secret_key) and ``refresh`` (jwt_refresh_secret_key)
- Customer: ``customer`` and ``customer_refresh`` (customer_jwt_secret_key)
- Guest checkout: ``guest`` (customer_jwt_secret_key)

Token Structure:
---------------
{
    "sub": "user-uuid",              # Subject (user, customer or guest id)
    "email": "jane@example.com",     # Staff / customer tokens
    "role": "MANAGER",               # Staff access tokens
    "type": "access|refresh|...",    # Token family, always validated
    "jti": "hex",                    # Refresh tokens: unique per issue
    "exp": 1234567890,
    "iat": 1234567890
}

Refresh tokens carry a random ``jti`` so two tokens issued for the same
subject within the same second are never byte-identical; the stored token
string is the session key.

==============================================================================
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any, Dict, Optional

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from storefront.config import get_settings


logger = logging.getLogger(__name__)


class SecurityManager:
    """
    Centralized security manager for authentication operations.

    Example:
        >>> security = SecurityManager()
        >>> hashed = security.hash_password("Secret#123")
        >>> security.verify_password("Secret#123", hashed)
        True
        >>> token = security.create_access_token({"sub": "user-id"})
        >>> security.verify_token(token, "access")["sub"]
        'user-id'
    """

    # =========================================================================
    # CLASS CONSTANTS
    # =========================================================================

    TOKEN_TYPE_ACCESS = "access"
    TOKEN_TYPE_REFRESH = "refresh"
    TOKEN_TYPE_CUSTOMER = "customer"
    TOKEN_TYPE_CUSTOMER_REFRESH = "customer_refresh"
    TOKEN_TYPE_GUEST = "guest"

    BCRYPT_SCHEMES = ["bcrypt"]
    BCRYPT_DEPRECATED = "auto"

    def __init__(self) -> None:
        self._pwd_context = CryptContext(
            schemes=self.BCRYPT_SCHEMES,
            deprecated=self.BCRYPT_DEPRECATED
        )
        self._settings = get_settings()

        logger.debug("SecurityManager initialized")

    # =========================================================================
    # PASSWORD HASHING METHODS
    # =========================================================================

    def hash_password(self, plain_password: str) -> str:
        """
        Hash a plain text password using bcrypt.

        Raises:
            ValueError: If the password is empty
        """
        if not plain_password:
            raise ValueError("Password cannot be empty")

        return self._pwd_context.hash(plain_password)

    def verify_password(
        self,
        plain_password: str,
        hashed_password: Optional[str]
    ) -> bool:
        """
        Verify a plain text password against a bcrypt hash.

        Returns False for a missing hash (passwordless guest customers).
        """
        if not hashed_password:
            return False

        try:
            return self._pwd_context.verify(plain_password, hashed_password)
        except Exception as e:
            logger.warning(f"Password verification error: {type(e).__name__}")
            return False

    # =========================================================================
    # JWT TOKEN CREATION METHODS
    # =========================================================================

    def create_access_token(
        self,
        data: Dict[str, Any],
        expires_delta: Optional[timedelta] = None
    ) -> str:
        """Create a short-lived staff access token."""
        return self._create_token(
            data=data,
            token_type=self.TOKEN_TYPE_ACCESS,
            expires_delta=expires_delta or timedelta(
                minutes=self._settings.access_token_expire_minutes
            )
        )

    def create_refresh_token(
        self,
        data: Dict[str, Any],
        expires_delta: Optional[timedelta] = None
    ) -> str:
        """Create a long-lived staff refresh token."""
        return self._create_token(
            data=data,
            token_type=self.TOKEN_TYPE_REFRESH,
            expires_delta=expires_delta or timedelta(
                days=self._settings.refresh_token_expire_days
            )
        )

    def create_customer_access_token(
        self,
        data: Dict[str, Any],
        expires_delta: Optional[timedelta] = None
    ) -> str:
        return self._create_token(
            data=data,
            token_type=self.TOKEN_TYPE_CUSTOMER,
            expires_delta=expires_delta or timedelta(
                hours=self._settings.customer_access_token_expire_hours
            )
        )

    def create_customer_refresh_token(
        self,
        data: Dict[str, Any],
        expires_delta: Optional[timedelta] = None
    ) -> str:
        return self._create_token(
            data=data,
            token_type=self.TOKEN_TYPE_CUSTOMER_REFRESH,
            expires_delta=expires_delta or timedelta(
                days=self._settings.customer_refresh_token_expire_days
            )
        )

    def create_guest_token(
        self,
        data: Dict[str, Any],
        expires_delta: Optional[timedelta] = None
    ) -> str:
        return self._create_token(
            data=data,
            token_type=self.TOKEN_TYPE_GUEST,
            expires_delta=expires_delta or timedelta(
                seconds=self._settings.guest_token_expire_seconds
            )
        )

    def _create_token(
        self,
        data: Dict[str, Any],
        token_type: str,
        expires_delta: timedelta
    ) -> str:
        """
        Internal method to create a JWT token.

        Args:
            data: Payload data to encode
            token_type: Token family, selects the signing secret
            expires_delta: Token lifetime

        Returns:
            Encoded JWT token string
        """
        payload = data.copy()

        now = datetime.now(timezone.utc)
        expire = now + expires_delta

        payload.update({
            "type": token_type,
            "exp": expire,
            "iat": now
        })
        if token_type in (self.TOKEN_TYPE_REFRESH, self.TOKEN_TYPE_CUSTOMER_REFRESH):
            payload["jti"] = uuid.uuid4().hex

        encoded_token = jwt.encode(
            payload,
            self._secret_for(token_type),
            algorithm=self._settings.jwt_algorithm
        )

        logger.debug(
            f"Created {token_type} token, expires: {expire.isoformat()}"
        )

        return encoded_token

    def _secret_for(self, token_type: str) -> str:
        if token_type == self.TOKEN_TYPE_ACCESS:
            return self._settings.jwt_secret_key
        if token_type == self.TOKEN_TYPE_REFRESH:
            return self._settings.jwt_refresh_secret_key
        return self._settings.customer_jwt_secret_key

    # =========================================================================
    # JWT TOKEN VERIFICATION METHODS
    # =========================================================================

    def decode_token(self, token: str, token_type: str) -> Dict[str, Any]:
        """
        Decode a token of the given family, raising on failure.

        Callers that need to tell an expired token apart from a forged one
        use this instead of verify_token.

        Raises:
            ExpiredSignatureError: Token signature is valid but expired
            JWTError: Bad signature, malformed token or wrong token type
        """
        payload = jwt.decode(
            token,
            self._secret_for(token_type),
            algorithms=[self._settings.jwt_algorithm]
        )

        if payload.get("type") != token_type:
            logger.warning(
                f"Token type mismatch: expected {token_type}, "
                f"got {payload.get('type')}"
            )
            raise JWTError("Invalid token type")

        return payload

    def verify_token(
        self,
        token: str,
        token_type: str = TOKEN_TYPE_ACCESS
    ) -> Optional[Dict[str, Any]]:
        """
        Verify and decode a JWT token.

        Validates signature, expiration and token type.

        Returns:
            Decoded payload dictionary if valid, None otherwise
        """
        try:
            return self.decode_token(token, token_type)

        except ExpiredSignatureError:
            logger.debug("Token verification failed: token expired")
            return None

        except JWTError as e:
            logger.warning(f"Token verification failed: {e}")
            return None

    # =========================================================================
    # UTILITY METHODS
    # =========================================================================

    def get_access_token_expire_seconds(self) -> int:
        return self._settings.access_token_expire_seconds

    def get_customer_access_token_expire_seconds(self) -> int:
        return self._settings.customer_access_token_expire_seconds

    def get_guest_token_expire_seconds(self) -> int:
        return self._settings.guest_token_expire_seconds


# =============================================================================
# SINGLETON INSTANCE MANAGEMENT
# =============================================================================

@lru_cache(maxsize=1)
def get_security_manager() -> SecurityManager:
    """Get the global SecurityManager instance."""
    return SecurityManager()
