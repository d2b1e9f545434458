# shopstar/core/config.py
from functools import lru_cache

from fastapi import Request
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Required env vars (.env):
      - JWT_SECRET (shared secret used to sign/verify access tokens)

    Optional (missing values disable the matching feature):
      - DATABASE_URL (defaults to a local SQLite file)
      - STRIPE_SECRET_KEY / STRIPE_WEBHOOK_SECRET (payments)
      - SMTP_* (order emails)
      - SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY (product image storage)
    """

    PROJECT_NAME: str = "ShopStar API"
    API_PREFIX: str = "/api"

    # development | production | test
    ENVIRONMENT: str = "development"

    # Database
    DATABASE_URL: str = "sqlite:///./shopstar.db"
    DATABASE_ECHO: bool = False

    # JWT issuance / verification
    JWT_SECRET: str
    JWT_ALG: str = "HS256"
    JWT_EXPIRE_MINUTES: int = 60 * 24 * 7

    # CORS
    FRONTEND_URL: str = "http://localhost:3000"
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Stripe
    STRIPE_SECRET_KEY: str | None = None
    STRIPE_WEBHOOK_SECRET: str | None = None
    PAYMENT_CURRENCY: str = "usd"

    # SMTP
    SMTP_HOST: str | None = None
    SMTP_PORT: int = 587
    SMTP_USERNAME: str | None = None
    SMTP_PASSWORD: str | None = None
    SMTP_FROM_EMAIL: str | None = None
    SMTP_FROM_NAME: str = "ShopStar"
    SMTP_USE_TLS: bool = True
    SMTP_USE_SSL: bool = False

    # Supabase Storage (product images)
    SUPABASE_URL: str | None = None
    SUPABASE_SERVICE_ROLE_KEY: str | None = None
    SUPABASE_STORAGE_BUCKET: str = "assets"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def payments_enabled(self) -> bool:
        return bool(self.STRIPE_SECRET_KEY)

    @property
    def email_enabled(self) -> bool:
        return bool(self.SMTP_HOST and self.SMTP_USERNAME and self.SMTP_PASSWORD)

    @property
    def storage_enabled(self) -> bool:
        return bool(self.SUPABASE_URL and self.SUPABASE_SERVICE_ROLE_KEY)


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()


def get_app_settings(request: Request) -> Settings:
    """
    FastAPI dependency returning the settings the running app was built with.
    """
    return request.app.state.settings
