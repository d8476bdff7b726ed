"""API configuration from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "postgresql+asyncpg://tumble:tumble@db:5432/tumble"
    SQL_ECHO: bool = False

    # Pricing
    TAX_RATE: float = 0.06
    QUOTA_SERVICE_NAME: str = "standard_bag"
    PICKUP_SERVICE_NAME: str = "pickup_service"

    # Recurring orders
    DELIVERY_OFFSET_DAYS: int = 2
    DEFAULT_TIME_SLOT: str = "8:00 AM - 12:00 PM"
    SCHEDULER_ENABLED: bool = True
    SCHEDULER_STARTUP_DELAY_SEC: float = 5.0

    # Realtime (Centrifugo HTTP API)
    CENTRIFUGO_API_URL: str = "http://centrifugo:8000/api"
    CENTRIFUGO_API_KEY: str = ""

    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "text"  # text | json

    class Config:
        env_file = ".env"
        extra = "allow"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
