"""Configuration settings for the dealdesk backend."""

from decimal import Decimal
from functools import lru_cache

from pydantic_settings import BaseSettings

from dealdesk.commerce.config import (
    DEFAULT_COMMISSION_RATE,
    DEFAULT_ESCROW_HOLD_DAYS,
    DEFAULT_MINIMUM_OFFER_CENTS,
    DEFAULT_OFFER_EXPIRY_DAYS,
    CommerceConfig,
)


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Supabase
    supabase_url: str
    supabase_secret_key: str | None = None  # Backend/admin access
    # Legacy key name, still honoured
    supabase_service_role_key: str | None = None

    # JWT (tokens are issued by the auth service; we only verify them)
    jwt_secret_key: str  # Required - no default for security
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60 * 24 * 7  # 1 week

    # Cron: scheduler sends "Authorization: Bearer <cron_secret>"
    cron_secret: str | None = None

    # Email (Resend)
    resend_api_key: str | None = None
    email_from: str = "Dealdesk <notifications@dealdesk.dev>"
    # Send every email here instead of the real recipient (staging)
    email_test_override: str | None = None
    app_base_url: str = "http://localhost:3000"

    # Commerce
    minimum_offer_cents: int = DEFAULT_MINIMUM_OFFER_CENTS
    offer_expiry_days: int = DEFAULT_OFFER_EXPIRY_DAYS
    commission_rate: Decimal = DEFAULT_COMMISSION_RATE
    escrow_hold_days: int = DEFAULT_ESCROW_HOLD_DAYS
    notification_workers: int = 4

    # App
    debug: bool = False
    rate_limit_enabled: bool = True
    # CORS: Allowed origins for cross-origin requests
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra env vars not in model

    def commerce_config(self) -> CommerceConfig:
        return CommerceConfig(
            minimum_offer_cents=self.minimum_offer_cents,
            offer_expiry_days=self.offer_expiry_days,
            commission_rate=self.commission_rate,
            escrow_hold_days=self.escrow_hold_days,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
