from pydantic_settings import BaseSettings
from dotenv import load_dotenv
from typing import Optional
import logging
from pathlib import Path

root_dir = Path(__file__).parent.parent
env_path = root_dir / ".env"
load_dotenv(env_path)

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    # PostgreSQL Database
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "soroboti_ads"
    DATABASE_URL: Optional[str] = None

    # Redis (verrous en vol + rate limit des notifications)
    REDIS_URL: Optional[str] = None

    # Application
    APP_NAME: str = "AdsPilot Automation"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    TIMEZONE: str = "Asia/Jakarta"

    # Shopee
    SHOPEE_API_BASE_URL: str = "https://seller.shopee.co.id"
    SHOPEE_API_TIMEOUT: int = 60
    SHOPEE_API_RATE_LIMIT: int = 50
    SHOPEE_USER_AGENT: str = (
        "ShopeeID/3.15.24 (com.beeasy.shopee.id; build:3.15.24; iOS 16.7.2) "
        "Alamofire/5.0.5 language=id app_type=1"
    )

    # Worker
    WORKER_CHECK_INTERVAL: int = 60
    MAX_CONCURRENT_CAMPAIGNS: int = 10
    INFLIGHT_LOCK_TTL: int = 120
    MISSED_SCHEDULE_TOLERANCE: int = 300
    SYNC_METRICS_BEFORE_RUN: bool = False

    # Logs
    RUN_GROUPING_WINDOW_SECONDS: int = 10

    # Telegram
    TELEGRAM_BOT_TOKEN: Optional[str] = None
    TELEGRAM_API_URL: str = "https://api.telegram.org"
    NOTIFICATION_RATE_WINDOW: int = 60
    NOTIFICATION_RATE_LIMIT: int = 5

    # Security (JWT)
    SECRET_KEY: str = "your-secret-key-change-this-in-production"
    ALGORITHM: str = "HS256"

    # Database URL
    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    class Config:
        env_file = ".env"
        env_file_encoding = 'utf-8'
        extra = "ignore"
        case_sensitive = True


try:
    settings = Settings()
except Exception as e:
    logger.error(f"❌ Settings creation failed: {e}")
    raise
