"""
==============================================================================
Pytest Configuration and Fixtures
==============================================================================

Provides test database, client, boundary fakes (S3, SMTP) and
authentication fixtures.

==============================================================================
"""

import os

# Settings are read once; point them at test values before the app imports
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CACHE_ENABLED"] = "false"
os.environ["TOKEN_CLEANUP_ENABLED"] = "false"
os.environ["DEBUG"] = "false"
os.environ["S3_PUBLIC_URL"] = "https://cdn.example.com"

import pytest
from typing import Dict, Generator, List, Optional
from botocore.exceptions import ClientError
from fastapi.testclient import TestClient
from helpers import make_image_bytes
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from storefront.config import get_settings
from storefront.main import app
from storefront.core.security import get_security_manager
from storefront.db.database import Base, get_db
from storefront.db.models import Customer, Product, Section, User, UserRole
from storefront.schemas.product import ProductCreate
from storefront.services.cache_service import CacheService, get_cache_service
from storefront.services.email_service import EmailService, get_email_service
from storefront.services.product_service import ProductService
from storefront.services.storage_service import StorageService, get_storage_service


# ============================================================================
# DATABASE FIXTURES
# ============================================================================

# In-memory SQLite for testing
SQLALCHEMY_TEST_DATABASE_URL = "sqlite://"

engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@event.listens_for(engine, "connect")
def _enable_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


# ============================================================================
# BOUNDARY FAKES
# ============================================================================

class FakeS3Client:
    """Records put/delete calls the way boto3's S3 client receives them."""

    def __init__(self):
        self.objects: Dict[str, bytes] = {}
        self.deleted: List[str] = []
        self.fail_after: Optional[int] = None
        self.puts = 0

    def put_object(self, Bucket, Key, Body, ContentType, ACL):
        if self.fail_after is not None and self.puts >= self.fail_after:
            raise ClientError(
                {"Error": {"Code": "ServiceUnavailable", "Message": "Slow down"}},
                "PutObject"
            )
        self.puts += 1
        self.objects[Key] = Body

    def delete_object(self, Bucket, Key):
        self.deleted.append(Key)
        self.objects.pop(Key, None)


class RecordingEmailService(EmailService):
    """EmailService that keeps messages instead of talking to SMTP."""

    def __init__(self):
        super().__init__(get_settings())
        self.outbox: List[Dict[str, str]] = []

    def _send(self, to: str, subject: str, text: str, html: str) -> bool:
        self.outbox.append({"to": to, "subject": subject, "text": text})
        return True

    def sent_to(self, address: str) -> List[Dict[str, str]]:
        return [message for message in self.outbox if message["to"] == address]


@pytest.fixture
def s3_client() -> FakeS3Client:
    return FakeS3Client()


@pytest.fixture
def storage(s3_client: FakeS3Client) -> StorageService:
    return StorageService(get_settings(), client=s3_client)


@pytest.fixture
def cache() -> CacheService:
    return CacheService(None, enabled=False)


@pytest.fixture
def email_outbox() -> RecordingEmailService:
    return RecordingEmailService()


@pytest.fixture(scope="function")
def client(
    db: Session,
    cache: CacheService,
    storage: StorageService,
    email_outbox: RecordingEmailService
) -> Generator[TestClient, None, None]:
    """Create test client with database and boundary overrides."""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache_service] = lambda: cache
    app.dependency_overrides[get_storage_service] = lambda: storage
    app.dependency_overrides[get_email_service] = lambda: email_outbox

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


# ============================================================================
# USER FIXTURES
# ============================================================================

def _create_user(db: Session, email: str, password: str, role: UserRole, section=None) -> User:
    security = get_security_manager()
    user = User(
        email=email,
        password_hash=security.hash_password(password),
        first_name=role.value.title(),
        last_name="User",
        role=role,
        assigned_section=section,
        is_active=True
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin_user(db: Session) -> User:
    """Create an admin user in the test database."""
    return _create_user(db, "admin@example.com", "Admin@12345", UserRole.ADMIN)


@pytest.fixture
def manager_user(db: Session) -> User:
    """Create a manager restricted to the CAFE section."""
    return _create_user(db, "manager@example.com", "Manager@123", UserRole.MANAGER, Section.CAFE)


@pytest.fixture
def staff_user(db: Session) -> User:
    return _create_user(db, "staff@example.com", "Staff@12345", UserRole.STAFF)


@pytest.fixture
def customer(db: Session) -> Customer:
    """Registered customer with password Customer@123."""
    security = get_security_manager()
    customer = Customer(
        email="jane@example.com",
        name="Jane Doe",
        first_name="Jane",
        last_name="Doe",
        password_hash=security.hash_password("Customer@123"),
        registration_source="web"
    )
    db.add(customer)
    db.commit()
    db.refresh(customer)
    return customer


# ============================================================================
# TOKEN FIXTURES
# ============================================================================

def _staff_token(user: User) -> str:
    return get_security_manager().create_access_token({
        "sub": user.id,
        "email": user.email,
        "role": user.role.value
    })


@pytest.fixture
def admin_token(admin_user: User) -> str:
    """Create access token for admin user."""
    return _staff_token(admin_user)


@pytest.fixture
def manager_token(manager_user: User) -> str:
    return _staff_token(manager_user)


@pytest.fixture
def staff_token(staff_user: User) -> str:
    return _staff_token(staff_user)


@pytest.fixture
def customer_token(customer: Customer) -> str:
    return get_security_manager().create_customer_access_token({
        "sub": customer.id,
        "email": customer.email
    })


# ============================================================================
# HEADER FIXTURES
# ============================================================================

@pytest.fixture
def admin_headers(admin_token: str) -> Dict[str, str]:
    """Authorization headers for admin user."""
    return {"Authorization": f"Bearer {admin_token}"}


@pytest.fixture
def manager_headers(manager_token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {manager_token}"}


@pytest.fixture
def staff_headers(staff_token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {staff_token}"}


@pytest.fixture
def customer_headers(customer_token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {customer_token}"}


# ============================================================================
# CATALOG FIXTURES
# ============================================================================

@pytest.fixture
def cafe_product(db: Session, admin_user: User, cache: CacheService) -> Product:
    """Cappuccino at 450.00 with 20 in stock."""
    return ProductService(db, cache).create_product(
        ProductCreate(
            section=Section.CAFE,
            sku="CAFE-CAPP-01",
            name="Cappuccino",
            price=450,
            cost_price=120,
            stock_quantity=20,
            status="ACTIVE",
            tags=["coffee", "hot"],
            cafe_attributes={"category": "coffee", "caffeine_content": "high"}
        ),
        admin_user
    )


@pytest.fixture
def book_product(db: Session, admin_user: User, cache: CacheService) -> Product:
    """Paperback at 1200.00 with 5 in stock."""
    return ProductService(db, cache).create_product(
        ProductCreate(
            section=Section.BOOKS,
            sku="BOOK-DUNE-01",
            title="Dune",
            price=1200,
            stock_quantity=5,
            status="ACTIVE",
            books_attributes={"author": "Frank Herbert", "format": "paperback"}
        ),
        admin_user
    )


@pytest.fixture
def image_bytes() -> bytes:
    return make_image_bytes()
