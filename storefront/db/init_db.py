"""
==============================================================================
Database Initialization Module
==============================================================================

Database setup at application startup.

Initialization Flow:
-------------------
1. Create all tables from ORM models
2. Create the default admin if no admin exists
3. Verify the connection

Usage:
------
    from storefront.db import init_db

    init_db()

==============================================================================
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.orm import Session

from storefront.config import get_settings
from storefront.core.security import get_security_manager
from storefront.db.database import DatabaseManager
from storefront.db.models import User, UserRole


logger = logging.getLogger(__name__)


class DatabaseInitializer:
    """
    Database initialization manager.

    Example:
        >>> initializer = DatabaseInitializer()
        >>> initializer.initialize()
    """

    def __init__(
        self,
        db_manager: Optional[DatabaseManager] = None,
        session: Optional[Session] = None
    ) -> None:
        """
        Args:
            db_manager: Optional DatabaseManager instance (creates new if None)
            session: Optional existing session (creates new if None)
        """
        self._db_manager = db_manager or DatabaseManager()
        self._security = get_security_manager()
        self._settings = get_settings()
        self._session = session

    # =========================================================================
    # SESSION MANAGEMENT
    # =========================================================================

    def _get_session(self) -> Session:
        if self._session is not None:
            return self._session
        return self._db_manager.get_session()

    # =========================================================================
    # TABLE OPERATIONS
    # =========================================================================

    def create_tables(self) -> None:
        logger.info("Creating database tables...")
        self._db_manager.create_tables()
        logger.info("✅ Database tables created successfully")

    # =========================================================================
    # ADMIN USER OPERATIONS
    # =========================================================================

    def create_default_admin(self) -> Optional[User]:
        """
        Create the default admin user if no admin exists.

        Credentials come from DEFAULT_ADMIN_EMAIL / DEFAULT_ADMIN_PASSWORD.

        Returns:
            Created User object, or None if an admin already exists
        """
        session = self._get_session()
        try:
            existing_admin = session.query(User).filter(
                User.role == UserRole.ADMIN
            ).first()

            if existing_admin:
                logger.info(f"Admin user already exists: {existing_admin.email}")
                return None

            admin_user = User(
                email=self._settings.default_admin_email.lower(),
                password_hash=self._security.hash_password(
                    self._settings.default_admin_password
                ),
                first_name="Store",
                last_name="Admin",
                role=UserRole.ADMIN,
                is_active=True
            )

            session.add(admin_user)
            session.commit()
            session.refresh(admin_user)

            logger.info(f"✅ Default admin user created: {admin_user.email}")
            logger.warning(
                "⚠️ Please change the default admin password immediately!"
            )

            return admin_user

        except Exception as e:
            session.rollback()
            logger.error(f"Failed to create default admin: {e}")
            raise

        finally:
            if self._session is None:
                session.close()

    # =========================================================================
    # INITIALIZATION METHODS
    # =========================================================================

    def initialize(self) -> None:
        """Create tables, create the default admin and check the connection."""
        logger.info("=" * 60)
        logger.info("Initializing database...")
        logger.info("=" * 60)

        self.create_tables()
        self.create_default_admin()

        if self._db_manager.verify_connection():
            logger.info("✅ Database connection verified")
        else:
            logger.warning("⚠️ Database connection check failed")

        logger.info("Database initialization complete")


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def init_db() -> None:
    """Initialize the database at application startup."""
    DatabaseInitializer().initialize()
