"""Application Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - All secrets come from environment variables (never hardcoded)
    - get_settings() is cached (lru_cache) — single instance per process
    - fee_rate is the only place the marketplace fee percentage is defined

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - Defaults provided for all non-secret settings: works out-of-the-box with docker-compose
    - fee_rate as Decimal: money math never touches binary floats
"""

from decimal import Decimal
from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Database
    database_url: str = (
        "postgresql+asyncpg://vinyl:vinyl@db:5432/vinyl_exchange"
    )

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str) -> str:
        """Hosting providers hand out postgresql:// but asyncpg needs postgresql+asyncpg://."""
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    database_pool_size: int = 20
    database_max_overflow: int = 10

    # Stripe
    stripe_secret_key: str = "sk_test_placeholder"
    stripe_timeout_seconds: float = 10.0
    stripe_max_network_retries: int = 2
    payment_currency: str = "usd"
    shipping_countries: list[str] = ["US", "CA"]

    # Marketplace fees (applied to buyer and seller independently)
    fee_rate: Decimal = Decimal("0.04")

    @field_validator("fee_rate")
    @classmethod
    def check_fee_rate(cls, v: Decimal) -> Decimal:
        if v < 0 or v >= 1:
            raise ValueError("fee_rate must be in [0, 1)")
        return v

    # Fallback origin for checkout redirect URLs when the request has no Origin header
    site_url: str = "http://localhost:5173"

    # API
    cors_origins: list[str] = ["http://localhost:5173"]

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"


@lru_cache
def get_settings() -> Settings:
    return Settings()
