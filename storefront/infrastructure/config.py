"""Application configuration.

Loads settings from environment variables with sensible defaults.
Store-level settings (checkout fields, payment toggles, notification
channels) live in the StoreSettings document, not here.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API
    api_version: str = "0.1.0"
    debug: bool = False

    # Persistence
    store_backend: str = "memory"
    database_url: str = "postgresql+asyncpg://storefront:storefront_dev_password@db:5432/storefront"

    # Product cache (empty disables invalidation)
    redis_url: str = ""

    # Cron trigger for the abandoned-cart job
    cron_secret: str = "dev-cron-secret-change-in-production"

    # Outbound HTTP
    http_timeout_seconds: float = 10.0

    # Payment providers
    razorpay_api_url: str = "https://api.razorpay.com/v1"
    cashfree_sandbox_url: str = "https://sandbox.cashfree.com/pg"
    cashfree_production_url: str = "https://api.cashfree.com/pg"
    cashfree_api_version: str = "2023-08-01"

    # Messaging (SMS / WhatsApp)
    twilio_api_url: str = "https://api.twilio.com/2010-04-01"

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    class Config:
        """Pydantic configuration."""

        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "STOREFRONT_"


settings = Settings()
