"""Application settings, read from the environment or a .env file"""
from decimal import Decimal

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Process-wide configuration"""

    APP_NAME: str = "Hotel Booking Core"
    LOG_LEVEL: str = "INFO"

    # JWT
    SECRET_KEY: str = "change-me-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Corporate credit
    LOW_CREDIT_THRESHOLD: Decimal = Decimal("10000")
    NEAR_LIMIT_UTILIZATION: float = 0.8
    MAX_BOOKING_CREDIT_AMOUNT: Decimal = Decimal("1000000")
    MAX_CREDIT_LIMIT: Decimal = Decimal("100000000")
    MAX_ADJUSTMENT_AMOUNT: Decimal = Decimal("10000000")

    # Booking coordinator
    COORDINATOR_TIMEOUT_MS: int = 5000
    MAX_CONCURRENCY_RETRIES: int = 3
    RETRY_BACKOFF_MS: int = 10
    MAX_STAY_NIGHTS: int = 30

    # Rates
    CACHING_TTL_SEC: int = 300
    CACHE_MAX_ENTRIES: int = 1024
    FALLBACK_TO_BASE_RATE: bool = True

    model_config = ConfigDict(env_file=".env", case_sensitive=True, extra="ignore")


settings = Settings()
