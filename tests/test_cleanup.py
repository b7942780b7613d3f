"""
==============================================================================
Token Cleanup Tests
==============================================================================
"""

from datetime import timedelta

from sqlalchemy.orm import Session

from storefront.db.database import DatabaseManager
from storefront.db.models import Customer, CustomerRefreshToken, RefreshToken, User
from storefront.services.cleanup_service import TokenCleanupService, TokenCleanupTaskManager
from storefront.utils.clock import utc_now


class TestTokenCleanup:
    """Tests for expired refresh token removal."""

    def _seed(self, db: Session, admin_user: User, customer: Customer) -> None:
        now = utc_now()
        db.add_all([
            RefreshToken(token="staff-old", user_id=admin_user.id, expires_at=now - timedelta(days=1)),
            RefreshToken(token="staff-new", user_id=admin_user.id, expires_at=now + timedelta(days=1)),
            CustomerRefreshToken(
                token="customer-old",
                customer_id=customer.id,
                expires_at=now - timedelta(minutes=5)
            ),
            CustomerRefreshToken(
                token="customer-new",
                customer_id=customer.id,
                expires_at=now + timedelta(days=30)
            ),
        ])
        db.commit()

    def test_cleanup_deletes_only_expired(self, db: Session, admin_user: User, customer: Customer):
        self._seed(db, admin_user, customer)

        assert TokenCleanupService(db).cleanup() == 2

        assert [t.token for t in db.query(RefreshToken).all()] == ["staff-new"]
        assert [t.token for t in db.query(CustomerRefreshToken).all()] == ["customer-new"]

    def test_cleanup_nothing_to_do(self, db: Session):
        assert TokenCleanupService(db).cleanup() == 0

    def test_stats(self, db: Session, admin_user: User, customer: Customer):
        self._seed(db, admin_user, customer)

        assert TokenCleanupService(db).get_stats() == {
            "staff_sessions": 2,
            "expired_staff_sessions": 1,
            "customer_sessions": 2,
            "expired_customer_sessions": 1,
        }

    def test_task_manager_is_singleton(self):
        assert TokenCleanupTaskManager() is TokenCleanupTaskManager()
        assert not TokenCleanupTaskManager().is_running

    def test_run_once_uses_its_own_session(self):
        DatabaseManager().create_tables()

        assert TokenCleanupTaskManager().run_once() == 0
