"""
==============================================================================
Customer Authentication Service Module
==============================================================================

Storefront customer accounts: registration, login, refresh-token
rotation, email verification and password reset.

Customers and staff are separate identities with separate token families
(``customer`` / ``customer_refresh``) signed with the customer secret.

Registration:
------------
    email unknown                  → new customer, source "web"
    email known, no password       → upgrade in place, source "guest_conversion"
                                     (checkout / admin-created customers)
    email known, has password      → 409

Either way guest orders placed with the email are linked to the account.

==============================================================================
"""

from __future__ import annotations

import logging
import secrets
from datetime import timedelta
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from storefront.config import get_settings
from storefront.core import exceptions
from storefront.core.security import SecurityManager, get_security_manager
from storefront.db.models import Customer, CustomerRefreshToken, CustomerStatus
from storefront.schemas.customer import CustomerRegisterRequest
from storefront.services.email_service import EmailService, get_email_service
from storefront.services.guest_order_service import GuestOrderService
from storefront.utils.clock import utc_now
from storefront.utils.validators import PasswordStrengthValidator


logger = logging.getLogger(__name__)

_password_validator = PasswordStrengthValidator()


def require_strong_password(password: str) -> None:
    """
    Raises:
        AppException: VALIDATION_ERROR listing every failed requirement
    """
    is_valid, errors = _password_validator.validate(password)
    if not is_valid:
        raise exceptions.validation_error(
            "Password does not meet security requirements",
            {"requirements": errors}
        )


def generate_secret_token() -> str:
    """32 random bytes as hex, used for verification and reset links."""
    return secrets.token_hex(32)


class CustomerAuthService:
    """
    Authentication service for storefront customers.

    Example:
        >>> service = CustomerAuthService(db_session)
        >>> customer, access, refresh, linked = service.register(request)
        >>> customer, access, refresh = service.refresh(refresh)
    """

    def __init__(
        self,
        db: Session,
        email_service: Optional[EmailService] = None,
        security: Optional[SecurityManager] = None
    ) -> None:
        self._db = db
        self._security = security or get_security_manager()
        self._email = email_service or get_email_service()
        self._settings = get_settings()
        self._guest_orders = GuestOrderService(db, self._security)

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def register(self, data: CustomerRegisterRequest) -> Tuple[Customer, str, str, int]:
        """
        Register a customer account.

        Returns:
            Tuple of (customer, access_token, refresh_token, guest_orders_linked)

        Raises:
            AppException: CONFLICT if the email already has an account,
                FORBIDDEN if the existing record is suspended,
                VALIDATION_ERROR for a weak password
        """
        existing = self._db.query(Customer).filter(Customer.email == data.email).first()

        if existing and existing.has_password:
            raise exceptions.conflict("An account with this email already exists. Please login.")

        if existing and existing.status == CustomerStatus.SUSPENDED:
            logger.warning(f"Customer registration refused: suspended - {data.email}")
            raise exceptions.account_disabled(
                "Your account has been suspended. Please contact support."
            )

        require_strong_password(data.password)

        verification_token = generate_secret_token()

        if existing:
            customer = existing
            customer.name = data.name.strip() if data.name else (customer.name or data.display_name)
            customer.first_name = data.first_name or customer.first_name
            customer.last_name = data.last_name or customer.last_name
            customer.phone = data.phone or customer.phone
            customer.registration_source = "guest_conversion"
            if customer.is_deleted:
                customer.status = CustomerStatus.ACTIVE
                customer.deleted_at = None
        else:
            customer = Customer(
                email=data.email,
                name=data.display_name,
                first_name=data.first_name,
                last_name=data.last_name,
                phone=data.phone,
                registration_source="web"
            )
            self._db.add(customer)

        customer.password_hash = self._security.hash_password(data.password)
        customer.marketing_consent = data.marketing_consent
        customer.sms_consent = data.sms_consent
        customer.email_verification_token = verification_token
        customer.email_verification_expiry = utc_now() + timedelta(
            hours=self._settings.email_verification_expire_hours
        )

        try:
            self._db.flush()
            linked = self._guest_orders.link_guest_orders_to_customer(
                customer.id, customer.email, commit=False
            )
            access_token, refresh_token = self._issue_tokens(customer)
            self._db.commit()
        except Exception:
            self._db.rollback()
            raise

        self._db.refresh(customer)

        logger.info(
            f"✅ Customer registered: {customer.email} "
            f"({customer.registration_source}, {linked} guest orders linked)"
        )

        self._email.send_verification_email(customer.email, customer.name, verification_token)

        return customer, access_token, refresh_token, linked

    # =========================================================================
    # LOGIN / REFRESH / LOGOUT
    # =========================================================================

    def login(self, email: str, password: str) -> Tuple[Customer, str, str]:
        """
        Raises:
            AppException: UNAUTHORIZED for bad credentials or a suspended account
        """
        normalized_email = email.strip().lower()

        customer = self._db.query(Customer).filter(
            Customer.email == normalized_email,
            Customer.deleted_at.is_(None)
        ).first()

        if not customer or not customer.has_password:
            logger.warning(f"Customer login failed: unknown account - {normalized_email}")
            raise exceptions.invalid_credentials()

        if not self._security.verify_password(password, customer.password_hash):
            logger.warning(f"Customer login failed: invalid password - {normalized_email}")
            raise exceptions.invalid_credentials()

        if customer.status == CustomerStatus.SUSPENDED:
            logger.warning(f"Customer login refused: suspended - {normalized_email}")
            raise exceptions.unauthorized(
                "Your account has been suspended. Please contact support."
            )

        customer.last_login = utc_now()

        self._enforce_session_limit(customer.id)
        access_token, refresh_token = self._issue_tokens(customer)
        self._db.commit()
        self._db.refresh(customer)

        logger.info(f"✅ Customer logged in: {customer.email}")

        return customer, access_token, refresh_token

    def refresh(self, refresh_token: str) -> Tuple[Customer, str, str]:
        """
        Rotate a customer refresh token.

        Same rules as staff rotation: an unknown but validly signed token
        revokes every session of its subject.
        """
        payload = self._security.verify_token(
            refresh_token,
            SecurityManager.TOKEN_TYPE_CUSTOMER_REFRESH
        )
        if not payload:
            raise exceptions.invalid_refresh_token()

        customer_id = payload.get("sub")

        stored = self._db.query(CustomerRefreshToken).filter(
            CustomerRefreshToken.token == refresh_token
        ).first()

        if not stored or stored.customer_id != customer_id:
            if customer_id:
                revoked = self._revoke_all(customer_id)
                self._db.commit()
                logger.warning(
                    f"⚠️ Refresh token reuse detected for customer {customer_id}, "
                    f"revoked {revoked} sessions"
                )
            raise exceptions.invalid_refresh_token()

        if stored.is_expired:
            self._db.delete(stored)
            self._db.commit()
            raise exceptions.unauthorized("Refresh token expired")

        customer = stored.customer
        if customer.is_deleted or customer.status == CustomerStatus.SUSPENDED:
            self._db.delete(stored)
            self._db.commit()
            raise exceptions.invalid_refresh_token()

        try:
            self._db.delete(stored)
            access_token, new_refresh_token = self._issue_tokens(customer)
            self._db.commit()
        except Exception:
            self._db.rollback()
            raise

        logger.info(f"✅ Tokens refreshed for customer: {customer.id}")

        return customer, access_token, new_refresh_token

    def logout(self, customer_id: str, refresh_token: str) -> None:
        """
        Raises:
            AppException: UNAUTHORIZED if the token is not one of the customer's
        """
        stored = self._db.query(CustomerRefreshToken).filter(
            CustomerRefreshToken.token == refresh_token
        ).first()

        if not stored or stored.customer_id != customer_id:
            raise exceptions.invalid_refresh_token()

        self._db.delete(stored)
        self._db.commit()

        logger.info(f"👋 Customer logged out: {customer_id}")

    def logout_all(self, customer_id: str) -> int:
        revoked = self._revoke_all(customer_id)
        self._db.commit()
        logger.info(f"👋 Customer logged out from all devices: {customer_id}")
        return revoked

    def get_active_sessions(self, customer_id: str) -> List[CustomerRefreshToken]:
        """Non-expired sessions, newest first."""
        return self._db.query(CustomerRefreshToken).filter(
            CustomerRefreshToken.customer_id == customer_id,
            CustomerRefreshToken.expires_at > utc_now()
        ).order_by(CustomerRefreshToken.created_at.desc()).all()

    # =========================================================================
    # PASSWORD RESET
    # =========================================================================

    def forgot_password(self, email: str) -> None:
        """
        Start a password reset.

        Always returns normally so the endpoint cannot be used to probe
        which emails have accounts.
        """
        email = email.strip().lower()
        customer = self._db.query(Customer).filter(
            Customer.email == email,
            Customer.deleted_at.is_(None)
        ).first()

        if not customer:
            logger.info(f"Password reset requested for unknown email: {email}")
            return

        reset_token = generate_secret_token()
        customer.password_reset_token = reset_token
        customer.password_reset_expiry = utc_now() + timedelta(
            minutes=self._settings.password_reset_expire_minutes
        )
        self._db.commit()

        self._email.send_password_reset_email(customer.email, customer.name, reset_token)

        logger.info(f"Password reset issued for customer: {customer.id}")

    def reset_password(self, token: str, new_password: str) -> None:
        """
        Complete a password reset and sign out every device.

        Raises:
            AppException: VALIDATION_ERROR for an unknown or expired token
                or a weak password
        """
        customer = self._db.query(Customer).filter(
            Customer.password_reset_token == token,
            Customer.password_reset_expiry > utc_now()
        ).first()

        if not customer:
            raise exceptions.validation_error(
                "Password reset token is invalid or has expired. "
                "Please request a new reset link."
            )

        require_strong_password(new_password)

        customer.password_hash = self._security.hash_password(new_password)
        customer.password_reset_token = None
        customer.password_reset_expiry = None
        self._revoke_all(customer.id)
        self._db.commit()

        self._email.send_password_changed_email(customer.email, customer.name)

        logger.info(f"✅ Password reset for customer: {customer.id}")

    # =========================================================================
    # EMAIL VERIFICATION
    # =========================================================================

    def verify_email(self, token: str) -> Customer:
        """
        Raises:
            AppException: VALIDATION_ERROR for an unknown or expired token
        """
        customer = self._db.query(Customer).filter(
            Customer.email_verification_token == token,
            Customer.email_verification_expiry > utc_now()
        ).first()

        if not customer:
            raise exceptions.validation_error(
                "Email verification token is invalid or has expired. "
                "Please request a new verification email."
            )

        customer.email_verified = True
        customer.email_verification_token = None
        customer.email_verification_expiry = None
        self._db.commit()
        self._db.refresh(customer)

        linked_orders = customer.total_orders if customer.created_from_guest else 0

        self._email.send_welcome_email(customer.email, customer.name, linked_orders or None)

        logger.info(f"✅ Email verified for customer: {customer.id}")

        return customer

    def resend_verification(self, email: str) -> None:
        """
        Raises:
            AppException: VALIDATION_ERROR if the customer is unknown or
                already verified
        """
        customer = self._db.query(Customer).filter(
            Customer.email == email.strip().lower(),
            Customer.deleted_at.is_(None)
        ).first()

        if not customer:
            raise exceptions.validation_error("Customer not found")

        if customer.email_verified:
            raise exceptions.validation_error("Email is already verified")

        verification_token = generate_secret_token()
        customer.email_verification_token = verification_token
        customer.email_verification_expiry = utc_now() + timedelta(
            hours=self._settings.email_verification_expire_hours
        )
        self._db.commit()

        self._email.send_verification_email(customer.email, customer.name, verification_token)

        logger.info(f"Verification email resent to customer: {customer.id}")

    # =========================================================================
    # TOKEN HELPERS
    # =========================================================================

    def get_token_expiry_seconds(self) -> int:
        return self._security.get_customer_access_token_expire_seconds()

    def _issue_tokens(self, customer: Customer) -> Tuple[str, str]:
        """Create a token pair and stage the refresh row in the session."""
        access_token = self._security.create_customer_access_token({
            "sub": customer.id,
            "email": customer.email,
            "name": customer.name,
            "status": customer.status.value,
            "email_verified": customer.email_verified,
        })
        refresh_token = self._security.create_customer_refresh_token({"sub": customer.id})

        self._db.add(CustomerRefreshToken(
            token=refresh_token,
            customer_id=customer.id,
            expires_at=utc_now() + timedelta(
                days=self._settings.customer_refresh_token_expire_days
            )
        ))

        return access_token, refresh_token

    def _revoke_all(self, customer_id: str) -> int:
        return self._db.query(CustomerRefreshToken).filter(
            CustomerRefreshToken.customer_id == customer_id
        ).delete(synchronize_session=False)

    def _enforce_session_limit(self, customer_id: str) -> None:
        """Drop expired rows and keep room for one more session."""
        now = utc_now()
        self._db.query(CustomerRefreshToken).filter(
            CustomerRefreshToken.customer_id == customer_id,
            CustomerRefreshToken.expires_at <= now
        ).delete(synchronize_session=False)

        tokens = self._db.query(CustomerRefreshToken).filter(
            CustomerRefreshToken.customer_id == customer_id
        ).order_by(CustomerRefreshToken.created_at.desc()).all()

        limit = self._settings.max_customer_sessions
        if len(tokens) >= limit:
            for token in tokens[limit - 1:]:
                self._db.delete(token)
