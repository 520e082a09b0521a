from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    DEBUG: bool = False
    APP_NAME: str = "quoteflow"
    APP_VERSION: str = "0.1.0"
    APP_DATABASE_DSN: str = "sqlite:////tmp/quoteflow.db"
    REDIS_URL: str = "redis://localhost:6379"

    # Invoicing
    DEFAULT_CURRENCY: str = "INR"
    DEFAULT_PAYMENT_TERMS_DAYS: int = 30
    MASTER_INVOICE_PREFIX: str = "MINV"
    CHILD_INVOICE_PREFIX: str = "INV"

    # Optimistic concurrency retries for ledger writes
    LEDGER_MAX_RETRIES: int = 3

    # Idempotency-Key records older than this are purged by the worker
    IDEMPOTENCY_TTL_HOURS: int = 24

    # Webhook signing
    webhook_secret: str = "whsec_default_secret"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    @property
    def version(self) -> str:
        return self.APP_VERSION


settings = Settings()
