"""
==============================================================================
Token Cleanup Service Module
==============================================================================

Background maintenance for the session tables.

Classes:
--------
- TokenCleanupService: deletes expired staff and customer refresh tokens
- TokenCleanupTaskManager: runs the cleanup on an asyncio background task

Background Task:
---------------
Every TOKEN_CLEANUP_INTERVAL_MINUTES the manager opens a fresh session,
deletes every refresh token whose expires_at has passed and closes the
session again. Rotation and logout already remove tokens as they are
used; this only sweeps tokens that were simply abandoned.

==============================================================================
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.config import get_settings
from storefront.db.database import DatabaseManager
from storefront.db.models import CustomerRefreshToken, RefreshToken
from storefront.utils.clock import utc_now


logger = logging.getLogger(__name__)


class TokenCleanupService:
    """
    Service for expired refresh token cleanup.

    Example:
        >>> cleanup = TokenCleanupService(db_session)
        >>> cleanup.cleanup()
        12
    """

    def __init__(self, db: Session) -> None:
        self._db = db

    def cleanup(self) -> int:
        """
        Delete expired staff and customer refresh tokens.

        Returns:
            Number of tokens deleted; 0 when the cleanup failed
        """
        now = utc_now()

        try:
            staff = self._db.query(RefreshToken).filter(
                RefreshToken.expires_at < now
            ).delete(synchronize_session=False)

            customers = self._db.query(CustomerRefreshToken).filter(
                CustomerRefreshToken.expires_at < now
            ).delete(synchronize_session=False)

            self._db.commit()

        except SQLAlchemyError as e:
            self._db.rollback()
            logger.error(f"❌ Token cleanup failed: {e}")
            return 0

        total = staff + customers
        if total:
            logger.info(
                f"🗑️ Cleaned up {total} expired refresh tokens "
                f"({staff} staff, {customers} customer)"
            )

        return total

    def get_stats(self) -> Dict[str, int]:
        now = utc_now()
        return {
            "staff_sessions": self._db.query(RefreshToken).count(),
            "expired_staff_sessions": self._db.query(RefreshToken).filter(
                RefreshToken.expires_at < now
            ).count(),
            "customer_sessions": self._db.query(CustomerRefreshToken).count(),
            "expired_customer_sessions": self._db.query(CustomerRefreshToken).filter(
                CustomerRefreshToken.expires_at < now
            ).count(),
        }


class TokenCleanupTaskManager:
    """
    Manager for the background token cleanup task.

    Example:
        >>> manager = TokenCleanupTaskManager()
        >>> manager.start()  # inside the running event loop
        >>> manager.stop()   # on shutdown
    """

    _instance: Optional[TokenCleanupTaskManager] = None

    def __new__(cls) -> TokenCleanupTaskManager:
        """Singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self) -> None:
        if getattr(self, '_initialized', False):
            return

        self._settings = get_settings()
        self._task: Optional[asyncio.Task] = None
        self._running = False
        self._initialized = True

    def run_once(self) -> int:
        """Run one cleanup pass on its own session."""
        with DatabaseManager().session_scope() as session:
            return TokenCleanupService(session).cleanup()

    async def _cleanup_loop(self) -> None:
        logger.info("🔄 Token cleanup background task started")

        while self._running:
            try:
                await asyncio.sleep(self._settings.token_cleanup_interval_minutes * 60)

                logger.debug("Running scheduled token cleanup...")
                self.run_once()

            except asyncio.CancelledError:
                logger.info("🛑 Token cleanup task cancelled")
                break
            except Exception as e:
                logger.error(f"Token cleanup task error: {e}")

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._running = True
            self._task = asyncio.create_task(self._cleanup_loop())
            logger.info(
                f"✅ Token cleanup task started "
                f"(every {self._settings.token_cleanup_interval_minutes} min)"
            )
        return self._task

    def stop(self) -> None:
        self._running = False
        if self._task and not self._task.done():
            self._task.cancel()
            logger.info("🛑 Token cleanup task stopped")

    @property
    def is_running(self) -> bool:
        return self._running and self._task is not None and not self._task.done()
