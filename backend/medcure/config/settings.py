"""
Application settings and configuration.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application configuration using environment variables."""

    # Database
    DATABASE_URL: str = "sqlite:///./medcure.db"

    # Redis (for Celery)
    REDIS_URL: str = "redis://localhost:6379/0"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Demand classification (average units per day over 30 days)
    HIGH_DEMAND_THRESHOLD: float = 10.0
    MEDIUM_DEMAND_THRESHOLD: float = 3.0

    # Trend: relative change of last 7 days vs the 7 days before
    TREND_THRESHOLD: float = 0.15

    # Seasonality
    PEAK_SEASON_MULTIPLIER: float = 1.3
    OFF_PEAK_MULTIPLIER: float = 0.9
    SEASONALITY_CONFIG_PATH: Optional[str] = None  # JSON file, overrides built-in table
    DYNAMIC_SEASONALITY_MIN_OBSERVATIONS: int = 100
    DYNAMIC_SEASONALITY_MIN_CONFIDENCE: float = 0.6

    # Forecasting defaults
    FORECAST_HORIZON_DAYS: int = 30
    HISTORY_WINDOW_DAYS: int = 90
    CONFIDENCE_TARGET_OBSERVATIONS: int = 90
    RECENT_SALE_DAYS: int = 3
    STALE_SALE_DAYS: int = 30
    MAX_UNCERTAINTY: float = 0.3

    # Reorder
    SUPPLIER_LEAD_TIME_DAYS: int = 7
    SERVICE_LEVEL_Z: float = 1.65  # ~95% service level
    RESTOCK_MULTIPLIER: float = 2.0

    # Bulk forecasting
    FORECAST_WORKERS: int = 4
    PARALLEL_FORECAST_MIN_PRODUCTS: int = 50

    # API
    API_PREFIX: str = "/api"

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
