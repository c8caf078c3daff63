# order_lifecycle/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path
from functools import lru_cache
from typing import List


class Settings(BaseSettings):
    ENV: str = "development"
    DATA_DIR: Path = Path("data")  # where CSV / XLSX tables live
    USERS_FILE: str = "users.csv"
    ORDERS_FILE: str = "orders.csv"
    STATUS_UPDATES_FILE: str = "order_status_updates.csv"

    JWT_SECRET: str = "dev-secret-change-me"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24

    # comma separated, e.g. CORS_ORIGINS=https://shop.example.com,https://admin.example.com
    CORS_ORIGINS: str = ""

    # comma separated channel names handed to the notifier
    NOTIFICATION_CHANNELS: str = "email,sms"
    NOTIFICATION_WORKERS: int = 2

    # confirmed orders older than this are moved to processing by the automation run
    AUTO_PROCESS_AFTER_HOURS: int = 24

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def cors_origins(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def notification_channels(self) -> List[str]:
        return [c.strip() for c in self.NOTIFICATION_CHANNELS.split(",") if c.strip()]


@lru_cache()
def get_settings() -> Settings:
    """Return cached Settings instance."""
    return Settings()


settings = get_settings()
