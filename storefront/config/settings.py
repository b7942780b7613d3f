"""
==============================================================================
Application Settings Module
==============================================================================

Configuration management for the storefront backend using Pydantic Settings.

A single cached Settings instance is shared by the whole application. Values
come from (highest priority first):

1. Environment variables
2. .env file
3. Defaults declared below

Setting groups:
---------------
- Application / server / database
- Staff JWT (access + refresh secrets, session cap)
- Customer JWT (customer secret, guest tokens, session cap)
- Orders (tax rate, currency, limits)
- Redis cache, S3 object storage, image uploads
- SMTP email
- Refresh token cleanup job

Security Considerations:
-----------------------
- Never commit .env files to version control
- Use distinct, strong JWT secrets per token family in production
- Change default admin credentials immediately

==============================================================================
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Example:
        >>> settings = Settings()
        >>> settings.tax_rate
        0.18
        >>> settings.customer_access_token_expire_seconds
        86400
    """

    # =========================================================================
    # PYDANTIC SETTINGS CONFIGURATION
    # =========================================================================
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        validate_default=True,
    )

    # =========================================================================
    # APPLICATION SETTINGS
    # =========================================================================
    app_name: str = Field(
        default="Storefront API",
        description="Display name for the application"
    )

    app_env: str = Field(
        default="development",
        description="Environment mode: development, staging, production"
    )

    debug: bool = Field(
        default=True,
        description="Enable debug mode for verbose logging"
    )

    api_version: str = Field(
        default="v1",
        description="Version segment used in the API prefix"
    )

    frontend_url: str = Field(
        default="http://localhost:3000",
        description="Storefront web client, used for links in emails"
    )

    # =========================================================================
    # SERVER SETTINGS
    # =========================================================================
    host: str = Field(
        default="0.0.0.0",
        description="Server bind address"
    )

    port: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Server port number"
    )

    # =========================================================================
    # DATABASE SETTINGS
    # =========================================================================
    database_url: str = Field(
        default="sqlite:///./storage/db/storefront.db",
        description="SQLAlchemy database connection string"
    )

    # =========================================================================
    # STAFF JWT SETTINGS
    # =========================================================================
    jwt_secret_key: str = Field(
        default="change-this-access-secret-in-production",
        min_length=16,
        description="Secret key for staff access tokens"
    )

    jwt_refresh_secret_key: str = Field(
        default="change-this-refresh-secret-in-production",
        min_length=16,
        description="Secret key for staff refresh tokens"
    )

    jwt_algorithm: str = Field(
        default="HS256",
        description="Algorithm for JWT signing"
    )

    access_token_expire_minutes: int = Field(
        default=15,
        ge=1,
        le=1440,
        description="Staff access token lifetime in minutes"
    )

    refresh_token_expire_days: int = Field(
        default=7,
        ge=1,
        le=90,
        description="Staff refresh token lifetime in days"
    )

    max_active_sessions_per_user: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Maximum concurrent refresh tokens per staff user"
    )

    # =========================================================================
    # CUSTOMER JWT SETTINGS
    # =========================================================================
    customer_jwt_secret_key: str = Field(
        default="change-this-customer-secret-in-production",
        min_length=16,
        description="Secret key for customer and guest tokens"
    )

    customer_access_token_expire_hours: int = Field(
        default=24,
        ge=1,
        le=720,
        description="Customer access token lifetime in hours"
    )

    customer_refresh_token_expire_days: int = Field(
        default=30,
        ge=1,
        le=365,
        description="Customer refresh token lifetime in days"
    )

    max_customer_sessions: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Maximum concurrent refresh tokens per customer"
    )

    guest_token_expire_seconds: int = Field(
        default=604800,
        ge=60,
        description="Guest checkout token lifetime in seconds"
    )

    email_verification_expire_hours: int = Field(
        default=24,
        ge=1,
        description="Lifetime of email verification links"
    )

    password_reset_expire_minutes: int = Field(
        default=60,
        ge=5,
        description="Lifetime of password reset links"
    )

    # =========================================================================
    # DEFAULT ADMIN SETTINGS
    # =========================================================================
    default_admin_email: str = Field(
        default="admin@example.com",
        description="Initial admin account email"
    )

    default_admin_password: str = Field(
        default="Admin@12345",
        min_length=8,
        description="Initial admin account password"
    )

    # =========================================================================
    # ORDER SETTINGS
    # =========================================================================
    tax_rate: float = Field(
        default=0.18,
        ge=0,
        le=1,
        description="Sales tax applied to (subtotal - discount)"
    )

    default_currency: str = Field(
        default="PKR",
        min_length=3,
        max_length=3,
        description="Currency code stored on orders"
    )

    max_items_per_order: int = Field(
        default=100,
        ge=1,
        description="Maximum line items per order"
    )

    max_quantity_per_item: int = Field(
        default=1000,
        ge=1,
        description="Maximum quantity of a single line item"
    )

    order_number_start: int = Field(
        default=1001,
        ge=1,
        description="Number of the first order (#1001)"
    )

    default_country: str = Field(
        default="Pakistan",
        description="Country used when a shipping address omits it"
    )

    # =========================================================================
    # PAGINATION SETTINGS
    # =========================================================================
    default_page_size: int = Field(default=20, ge=1, le=100)

    max_page_size: int = Field(default=100, ge=1, le=1000)

    # =========================================================================
    # CACHE SETTINGS
    # =========================================================================
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL"
    )

    cache_enabled: bool = Field(
        default=True,
        description="Enable Redis caching of product listings"
    )

    product_cache_ttl_seconds: int = Field(
        default=300,
        ge=1,
        description="TTL for cached product listings"
    )

    # =========================================================================
    # OBJECT STORAGE SETTINGS
    # =========================================================================
    s3_bucket: str = Field(
        default="storefront-media",
        description="Bucket holding product images"
    )

    s3_region: str = Field(
        default="us-east-1",
        description="Bucket region"
    )

    s3_access_key_id: Optional[str] = Field(default=None)

    s3_secret_access_key: Optional[str] = Field(default=None)

    s3_endpoint_url: Optional[str] = Field(
        default=None,
        description="Custom endpoint for S3-compatible stores (MinIO)"
    )

    s3_force_path_style: bool = Field(
        default=False,
        description="Use path-style addressing (MinIO)"
    )

    s3_public_url: Optional[str] = Field(
        default=None,
        description="Public base URL (CDN) in front of the bucket"
    )

    s3_base_prefix: str = Field(
        default="app/uploads",
        description="Key prefix for every uploaded object"
    )

    # =========================================================================
    # UPLOAD SETTINGS
    # =========================================================================
    max_file_size_bytes: int = Field(
        default=5 * 1024 * 1024,
        ge=1024,
        description="Maximum size of one uploaded image"
    )

    max_files_per_product: int = Field(
        default=10,
        ge=1,
        description="Maximum images attached to one product"
    )

    min_image_dimension: int = Field(
        default=800,
        ge=1,
        description="Minimum width and height of uploaded images"
    )

    # =========================================================================
    # EMAIL SETTINGS
    # =========================================================================
    smtp_host: str = Field(default="smtp.gmail.com")

    smtp_port: int = Field(default=587, ge=1, le=65535)

    smtp_use_tls: bool = Field(
        default=True,
        description="Issue STARTTLS after connecting"
    )

    smtp_user: Optional[str] = Field(default=None)

    smtp_password: Optional[str] = Field(default=None)

    email_from_name: str = Field(default="TRIO Shopify")

    email_from_address: str = Field(default="noreply@trio.com")

    # =========================================================================
    # TOKEN CLEANUP SETTINGS
    # =========================================================================
    token_cleanup_enabled: bool = Field(
        default=True,
        description="Periodically delete expired refresh tokens"
    )

    token_cleanup_interval_minutes: int = Field(
        default=60,
        ge=1,
        le=1440,
        description="Cleanup task interval in minutes"
    )

    # =========================================================================
    # CORS SETTINGS
    # =========================================================================
    cors_origins: str = Field(
        default='["*"]',
        description="Allowed CORS origins as JSON array string"
    )

    # =========================================================================
    # VALIDATORS
    # =========================================================================
    @field_validator("app_env")
    @classmethod
    def validate_app_env(cls, value: str) -> str:
        """Normalize the environment name, falling back to development."""
        valid_envs = {"development", "staging", "production"}
        normalized = value.lower().strip()

        if normalized not in valid_envs:
            logger.warning(
                f"Unknown environment '{value}', defaulting to 'development'"
            )
            return "development"

        return normalized

    @field_validator("jwt_algorithm")
    @classmethod
    def validate_jwt_algorithm(cls, value: str) -> str:
        """
        Validate JWT algorithm is supported.

        Only HMAC algorithms are accepted since every token family is
        signed with a shared secret.

        Raises:
            ValueError: If algorithm is not supported
        """
        supported = {"HS256", "HS384", "HS512"}

        if value.upper() not in supported:
            raise ValueError(
                f"Unsupported JWT algorithm: {value}. "
                f"Supported: {', '.join(sorted(supported))}"
            )

        return value.upper()

    @field_validator("default_currency")
    @classmethod
    def validate_currency(cls, value: str) -> str:
        return value.upper()

    # =========================================================================
    # COMPUTED PROPERTIES
    # =========================================================================
    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env == "production"

    @property
    def api_prefix(self) -> str:
        return f"/api/{self.api_version}"

    @property
    def cors_origins_list(self) -> List[str]:
        """
        Parse CORS origins from JSON string to list.

        Returns:
            List of allowed origin strings
        """
        try:
            origins = json.loads(self.cors_origins)
            if isinstance(origins, list):
                return origins
            return ["*"]
        except json.JSONDecodeError:
            logger.warning(
                f"Invalid CORS origins JSON: {self.cors_origins}, "
                "defaulting to ['*']"
            )
            return ["*"]

    @property
    def access_token_expire_seconds(self) -> int:
        """Staff access token expiry in seconds."""
        return self.access_token_expire_minutes * 60

    @property
    def customer_access_token_expire_seconds(self) -> int:
        return self.customer_access_token_expire_hours * 60 * 60

    @property
    def smtp_configured(self) -> bool:
        """SMTP is only used when credentials are present."""
        return bool(self.smtp_user and self.smtp_password)

    # =========================================================================
    # UTILITY METHODS
    # =========================================================================
    def get_database_path(self) -> Optional[Path]:
        """
        Extract database file path for SQLite databases.

        Returns:
            Path to database file, or None for non-SQLite or in-memory databases
        """
        if self.database_url.startswith("sqlite"):
            db_path = self.database_url.replace("sqlite:///", "")
            if not db_path or db_path.startswith("sqlite:") or db_path == ":memory:":
                return None
            if db_path.startswith("./"):
                db_path = db_path[2:]
            return Path(db_path)
        return None

    def ensure_directories(self) -> None:
        """Create the database directory for file-based SQLite."""
        db_path = self.get_database_path()
        if db_path:
            db_path.parent.mkdir(parents=True, exist_ok=True)

        logger.debug("Required directories created/verified")

    def __repr__(self) -> str:
        return (
            f"Settings(app_name={self.app_name!r}, "
            f"app_env={self.app_env!r}, "
            f"debug={self.debug})"
        )


# =============================================================================
# SINGLETON INSTANCE MANAGEMENT
# =============================================================================

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get the global Settings instance.

    Uses lru_cache so the environment is read once per process.

    Returns:
        Global Settings instance
    """
    settings = Settings()

    settings.ensure_directories()

    if settings.debug:
        logger.info(f"Configuration loaded: {settings}")

    return settings


settings = get_settings()
