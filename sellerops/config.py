from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import Optional, List
from functools import lru_cache
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./sellerops.db"

    # Database Connection Pool Settings
    DB_POOL_SIZE: int = 5  # Base number of connections in pool
    DB_MAX_OVERFLOW: int = 10  # Extra connections allowed beyond pool_size
    DB_POOL_TIMEOUT: int = 30  # Seconds to wait for connection from pool
    DB_POOL_RECYCLE: int = 1800  # Recycle connections after 30 minutes

    # App Settings
    APP_NAME: str = "SellerOps Sync"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # CORS - accepts JSON string, comma-separated, or list
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
    ]

    # Coupang Open API accounts (second set is optional)
    COUPANG_API_URL: str = "https://api-gateway.coupang.com"
    COUPANG_VENDOR_ID: str = ""
    COUPANG_ACCESS_KEY: str = ""
    COUPANG_SECRET_KEY: str = ""
    COUPANG_ACCOUNT_NAME: str = "컴팩트우디"
    COUPANG_VENDOR_ID_2: str = ""
    COUPANG_ACCESS_KEY_2: str = ""
    COUPANG_SECRET_KEY_2: str = ""
    COUPANG_ACCOUNT_NAME_2: str = "쉴트"

    # Naver Commerce API accounts (second set is optional)
    NAVER_API_URL: str = "https://api.commerce.naver.com"
    NAVER_CLIENT_ID: str = ""
    NAVER_CLIENT_SECRET: str = ""
    NAVER_ACCOUNT_NAME: str = "스마트스토어"
    NAVER_CLIENT_ID_2: str = ""
    NAVER_CLIENT_SECRET_2: str = ""
    NAVER_ACCOUNT_NAME_2: str = "스마트스토어2"

    # Outbound HTTP
    PROXY_URL: Optional[str] = None  # Fixed egress IP for allow-listed APIs
    MARKETPLACE_HTTP_TIMEOUT_SECONDS: float = 10.0
    MARKETPLACE_MAX_RETRIES: int = 3  # Retries on 429 / timeout before surfacing
    MARKETPLACE_RETRY_BACKOFF_SECONDS: float = 1.0  # Doubles on every attempt
    MARKETPLACE_MAX_PAGES: int = 200  # Hard stop for a runaway nextToken chain

    # Sync budgets (host execution limit is 60s)
    SYNC_CHUNK_MAX_RUNTIME_SECONDS: float = 50.0
    SYNC_CRON_MAX_RUNTIME_SECONDS: float = 8.0
    SYNC_RANGE_MAX_RUNTIME_SECONDS: float = 50.0
    ROCKET_CRON_LOOKBACK_DAYS: int = 3  # today plus 3 previous days
    REVENUE_CRON_LOOKBACK_DAYS: int = 7
    REVENUE_MAX_SPAN_DAYS: int = 30
    NAVER_DEFAULT_LOOKBACK_DAYS: int = 7
    NAVER_SYNC_CONCURRENCY: int = 5  # Day windows fetched concurrently

    # Endpoint boundary behaviour (verify against the live API)
    ROCKET_ORDERS_WIDEN_DAYS: int = 1  # rg/orders returns nothing when from == to
    ROCKET_ORDERS_FILTER_BY_RECORD_TIME: bool = True  # by paidAt
    SELLER_ORDERS_WIDEN_DAYS: int = 0
    SELLER_ORDERS_FILTER_BY_RECORD_TIME: bool = False  # by orderedAt
    REVENUE_WIDEN_DAYS: int = 0
    REVENUE_FILTER_BY_RECORD_TIME: bool = False  # by recognizedAt
    NAVER_ORDERS_WIDEN_DAYS: int = 0
    NAVER_ORDERS_FILTER_BY_RECORD_TIME: bool = False  # by paymentDate

    # Product resolution
    RESOLVER_SKU_PREFIX_LENGTH: int = 9

    # Data quality
    MISCLASSIFICATION_NAME_MARKER: str = "로켓"
    MASKED_ORDERER_NAME: str = "(비공개)"

    # Background scheduler
    SCHEDULER_ENABLED: bool = False
    SCHEDULER_TIMEZONE: str = "Asia/Seoul"
    SELLER_SYNC_INTERVAL_MINUTES: int = 30
    ROCKET_SYNC_HOUR: int = 6
    REVENUE_SYNC_HOUR: int = 7
    NAVER_SYNC_HOUR: int = 6

    @field_validator('CORS_ORIGINS', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(',')]
        return v

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
