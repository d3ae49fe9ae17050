"""Application-wide configuration settings."""

from pathlib import Path
from typing import Dict, List, Optional, Tuple

from dotenv import load_dotenv
from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables
load_dotenv(override=True)

# Development-only signing secret; set CURSOR_SECRET in production
DEFAULT_CURSOR_SECRET = "equipmart-cursor"

# Base paths
BASE_DIR = Path(__file__).parent
LOGS_DIR = BASE_DIR / "logs"


class APISettings(BaseSettings):
    """API-related settings."""

    api_key: SecretStr = Field(default=SecretStr(""), validation_alias="API_KEY")
    cors_origins: list[str] = Field(default=["*"])
    environment: str = Field(default="development", validation_alias="ENVIRONMENT")

    model_config = SettingsConfigDict(env_file=".env", extra="allow")


class DatabaseSettings(BaseSettings):
    """Database-related settings."""

    mongodb_uri: str = Field(default="mongodb://localhost:27017", validation_alias="MONGODB_URI")
    database_name: str = Field(default="equipmart", validation_alias="MONGODB_DATABASE")

    @property
    def uri(self) -> str:
        """Get the MongoDB connection URI."""
        return self.mongodb_uri

    model_config = SettingsConfigDict(env_file=".env", extra="allow")


class CacheSettings(BaseSettings):
    """Redis cache settings."""

    redis_url: str = Field(default="redis://localhost:6379/0", validation_alias="REDIS_URL")
    search_ttl: int = Field(default=300, validation_alias="SEARCH_CACHE_TTL")  # 5 minutes
    search_prefix: str = Field(default="search")

    model_config = SettingsConfigDict(env_file=".env", extra="allow")


class SearchSettings(BaseSettings):
    """Search and pagination settings."""

    default_limit: int = Field(default=20)
    max_limit: int = Field(default=100)
    facet_limit: int = Field(default=10)
    # Upper bound None means open-ended
    price_ranges: List[Tuple[float, Optional[float]]] = Field(
        default=[
            (0, 1000),
            (1000, 10000),
            (10000, 50000),
            (50000, 100000),
            (100000, 500000),
            (500000, None),
        ]
    )
    cursor_max_age_hours: int = Field(default=24)
    cursor_secret: SecretStr = Field(default=SecretStr(DEFAULT_CURSOR_SECRET), validation_alias="CURSOR_SECRET")
    suggestion_pool_size: int = Field(default=50)

    model_config = SettingsConfigDict(env_file=".env", extra="allow")


class AnalyticsSettings(BaseSettings):
    """Popularity and trending analytics settings."""

    key_prefix: str = Field(default="analytics")
    trending_window_days: int = Field(default=7)
    prune_interval_seconds: int = Field(default=3600, validation_alias="TRENDING_PRUNE_INTERVAL")
    daily_retention_days: int = Field(default=30)
    user_retention_days: int = Field(default=90)
    user_history_max: int = Field(default=100)
    category_views_max: int = Field(default=1000)

    model_config = SettingsConfigDict(env_file=".env", extra="allow")


class LoggingSettings(BaseSettings):
    """Logging-related settings."""

    log_level: str = Field(default="INFO")
    file_log_level: str = Field(default="DEBUG")
    backup_count: int = Field(default=9)
    format: str = Field(default="%(name)s - %(levelname)s - %(message)s")
    file_format: str = Field(default="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    enable_request_logging: bool = Field(default=True, validation_alias="ENABLE_REQUEST_LOGGING")
    noisy_loggers: Dict[str, str] = Field(
        default={
            "urllib3": "WARNING",
            "uvicorn": "WARNING",
            "pymongo": "WARNING",
            "pymongo.topology": "WARNING",
            "pymongo.server": "WARNING",
            "pymongo.connection": "WARNING",
            "pymongo.command": "WARNING",
            "apscheduler": "WARNING",
            "watchfiles": "WARNING",
            "watchfiles.main": "WARNING",
        }
    )

    model_config = SettingsConfigDict(env_file=".env", extra="allow")


class SchedulerSettings(BaseSettings):
    """Scheduler-related settings."""

    enabled: bool = Field(default=True, validation_alias="SCHEDULER_ENABLED")
    timezone: str = Field(default="UTC")
    job_defaults: Dict[str, object] = Field(
        default={
            "coalesce": True,  # Combine multiple pending executions of the same job into one
            "max_instances": 1,
            "misfire_grace_time": 60,
        }
    )

    model_config = SettingsConfigDict(env_file=".env", extra="allow")


class Settings(BaseSettings):
    """Global settings container."""

    api: APISettings = Field(default_factory=APISettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)
    analytics: AnalyticsSettings = Field(default_factory=AnalyticsSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)

    model_config = SettingsConfigDict(env_file=".env", extra="allow")


# Create global settings instance
settings = Settings()
