# grocery_admin/core/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Env vars (.env), all optional for local development:
      - DATABASE_URL (defaults to a local SQLite file)
      - JWT_SECRET (signing secret for admin access tokens)
      - SMTP_* (only needed for the email bulk actions)
    """

    PROJECT_NAME: str = "Grocery Admin"
    API_PREFIX: str = ""

    # Database
    DATABASE_URL: str = "sqlite:///./grocery.db"
    # Only applied to Postgres URLs that don't already carry sslmode
    DATABASE_SSLMODE: str | None = "require"
    DATABASE_ECHO: bool = False

    # JWT issuing / verification
    JWT_SECRET: str = "change-me"
    JWT_ALG: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 12

    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
    ]

    # Listing defaults
    ORDERS_PER_PAGE: int = 15
    USERS_PER_PAGE: int = 10
    MAX_PER_PAGE: int = 100

    LOW_STOCK_THRESHOLD: int = 10
    # Flat tax used by the financial report (gross -> net)
    REPORT_TAX_RATE: float = 0.10

    # SMTP (feedback / notification / welcome emails)
    SMTP_HOST: str | None = None
    SMTP_PORT: int = 587
    SMTP_USERNAME: str | None = None
    SMTP_PASSWORD: str | None = None
    SMTP_FROM_EMAIL: str | None = None
    SMTP_FROM_NAME: str = "Grocery Store"
    SMTP_USE_TLS: bool = True
    SMTP_USE_SSL: bool = False

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
