"""
==============================================================================
Staff Authentication Tests
==============================================================================

Tests for health checks, staff login, refresh token rotation and sessions.

==============================================================================
"""

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from storefront.config import get_settings
from storefront.db.models import RefreshToken, User


def _login(client: TestClient, email: str = "admin@example.com", password: str = "Admin@12345"):
    return client.post("/api/v1/auth/login", json={"email": email, "password": password})


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    def test_health_check(self, client: TestClient):
        response = client.get("/api/v1/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["components"]["database"] == "healthy"

    def test_readiness_probe(self, client: TestClient):
        response = client.get("/api/v1/health/ready")
        assert response.status_code == 200
        assert response.json()["ready"] is True

    def test_liveness_probe(self, client: TestClient):
        response = client.get("/api/v1/health/live")
        assert response.status_code == 200
        assert response.json()["alive"] is True

    def test_root(self, client: TestClient):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["health"] == "/api/v1/health"


class TestAuthEndpoints:
    """Tests for staff authentication endpoints."""

    def test_login_success(self, client: TestClient, admin_user: User):
        """Test successful login."""
        response = _login(client)
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["token_type"] == "bearer"
        assert "access_token" in data
        assert "refresh_token" in data
        assert data["user"]["email"] == admin_user.email
        assert data["user"]["role"] == "ADMIN"

    def test_login_is_case_insensitive(self, client: TestClient, admin_user: User):
        response = _login(client, email="ADMIN@Example.com")
        assert response.status_code == 200

    def test_login_invalid_password(self, client: TestClient, admin_user: User):
        """Test login with invalid password."""
        response = _login(client, password="wrongpassword")
        assert response.status_code == 401
        error = response.json()["error"]
        assert error["code"] == "UNAUTHORIZED"
        assert error["message"] == "Invalid email or password"

    def test_login_user_not_found(self, client: TestClient):
        response = _login(client, email="nobody@example.com")
        assert response.status_code == 401

    def test_login_inactive_user(self, client: TestClient, db: Session, admin_user: User):
        admin_user.is_active = False
        db.commit()

        response = _login(client)
        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Account is inactive"

    def test_get_current_user(self, client: TestClient, admin_headers: dict, admin_user: User):
        response = client.get("/api/v1/auth/me", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["user"]["email"] == admin_user.email

    def test_get_current_user_no_token(self, client: TestClient):
        response = client.get("/api/v1/auth/me")
        assert response.status_code == 401
        assert response.json()["error"]["message"] == "No token provided"

    def test_customer_token_rejected_for_staff_routes(
        self,
        client: TestClient,
        customer_headers: dict
    ):
        response = client.get("/api/v1/auth/me", headers=customer_headers)
        assert response.status_code == 401

    def test_register_requires_admin(self, client: TestClient, staff_headers: dict):
        response = client.post(
            "/api/v1/auth/register",
            headers=staff_headers,
            json={
                "email": "new@example.com",
                "password": "Password@1",
                "first_name": "New",
                "last_name": "Staff"
            }
        )
        assert response.status_code == 403

    def test_register_manager(self, client: TestClient, admin_headers: dict):
        response = client.post(
            "/api/v1/auth/register",
            headers=admin_headers,
            json={
                "email": "Books.Manager@example.com",
                "password": "Password@1",
                "first_name": "Books",
                "last_name": "Manager",
                "role": "MANAGER",
                "assigned_section": "BOOKS"
            }
        )
        assert response.status_code == 201
        user = response.json()["user"]
        assert user["email"] == "books.manager@example.com"
        assert user["assigned_section"] == "BOOKS"

    def test_register_duplicate_email(self, client: TestClient, admin_headers: dict):
        response = client.post(
            "/api/v1/auth/register",
            headers=admin_headers,
            json={
                "email": "admin@example.com",
                "password": "Password@1",
                "first_name": "Second",
                "last_name": "Admin"
            }
        )
        assert response.status_code == 400
        assert response.json()["error"]["message"] == "User with this email already exists"

    def test_change_password(self, client: TestClient, admin_headers: dict, admin_user: User):
        response = client.put(
            "/api/v1/auth/change-password",
            headers=admin_headers,
            json={"old_password": "Admin@12345", "new_password": "Changed@12345"}
        )
        assert response.status_code == 200
        assert _login(client, password="Changed@12345").status_code == 200

    def test_change_password_wrong_current(self, client: TestClient, admin_headers: dict):
        response = client.put(
            "/api/v1/auth/change-password",
            headers=admin_headers,
            json={"old_password": "nope", "new_password": "Changed@12345"}
        )
        assert response.status_code == 401


class TestRefreshTokenRotation:
    """Tests for refresh rotation, reuse detection and the session cap."""

    def test_refresh_rotates_token(self, client: TestClient, db: Session, admin_user: User):
        first = _login(client).json()["refresh_token"]

        response = client.post("/api/v1/auth/refresh", json={"refresh_token": first})
        assert response.status_code == 200
        second = response.json()["refresh_token"]

        assert second != first
        tokens = [row.token for row in db.query(RefreshToken).all()]
        assert tokens == [second]

    def test_reused_refresh_token_revokes_all_sessions(
        self,
        client: TestClient,
        db: Session,
        admin_user: User
    ):
        first = _login(client).json()["refresh_token"]
        _login(client)
        rotated = client.post("/api/v1/auth/refresh", json={"refresh_token": first}).json()

        replay = client.post("/api/v1/auth/refresh", json={"refresh_token": first})
        assert replay.status_code == 401
        assert replay.json()["error"]["message"] == "Invalid refresh token"

        assert db.query(RefreshToken).filter(RefreshToken.user_id == admin_user.id).count() == 0
        still_valid = client.post(
            "/api/v1/auth/refresh",
            json={"refresh_token": rotated["refresh_token"]}
        )
        assert still_valid.status_code == 401

    def test_garbage_refresh_token(self, client: TestClient):
        response = client.post("/api/v1/auth/refresh", json={"refresh_token": "not-a-jwt"})
        assert response.status_code == 401

    def test_access_token_cannot_refresh(self, client: TestClient, admin_user: User):
        access = _login(client).json()["access_token"]
        response = client.post("/api/v1/auth/refresh", json={"refresh_token": access})
        assert response.status_code == 401

    def test_session_cap_evicts_oldest(self, client: TestClient, db: Session, admin_user: User):
        limit = get_settings().max_active_sessions_per_user
        tokens = [_login(client).json()["refresh_token"] for _ in range(limit + 2)]

        stored = {row.token for row in db.query(RefreshToken).all()}
        assert len(stored) == limit
        assert tokens[0] not in stored
        assert tokens[-1] in stored

    def test_logout_is_idempotent(self, client: TestClient, db: Session, admin_user: User):
        refresh = _login(client).json()["refresh_token"]

        for _ in range(2):
            response = client.post("/api/v1/auth/logout", json={"refresh_token": refresh})
            assert response.status_code == 200

        assert db.query(RefreshToken).count() == 0

    def test_logout_all_and_sessions(self, client: TestClient, admin_headers: dict, admin_user: User):
        _login(client)
        _login(client)

        sessions = client.get("/api/v1/auth/sessions", headers=admin_headers).json()
        assert sessions["count"] == 2

        response = client.post("/api/v1/auth/logout-all", headers=admin_headers)
        assert response.json()["message"] == "Logged out from 2 sessions"
        assert client.get("/api/v1/auth/sessions", headers=admin_headers).json()["count"] == 0
