from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_NAME: str = "ordersync"
    version: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    APP_DATABASE_DSN: str = "sqlite:////tmp/ordersync.db"
    REDIS_URL: str = "redis://localhost:6379"

    # Notifications
    TELEGRAM_BOT_TOKEN: str = ""
    TELEGRAM_API_BASE: str = "https://api.telegram.org"
    NOTIFICATION_TRANSPORT: str = "inline"  # "inline" or "queue"
    NOTIFICATION_TIMEOUT_SECONDS: float = 10.0

    # Ingestion
    ORDER_STALE_UPDATE_GUARD: bool = True
    AUDIT_SINK: str = "database"  # "database" or "logging"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"


settings = Settings()
