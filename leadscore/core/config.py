from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = ConfigDict(env_file=".env", case_sensitive=True)

    DATABASE_URL: str
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Redis configuration for rule snapshots and status-change stream
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_CACHE_TTL: int = 300  # 5 minutes default for rule snapshots
    STATUS_CHANGE_STREAM: str = "scoring:status-changes"

    # Decay scheduler
    DECAY_ENABLED: bool = True
    DECAY_INTERVAL_SECONDS: int = 300
    DECAY_BATCH_SIZE: int = 500
    DECAY_CONCURRENCY: int = 4

    # Per-contact critical section retry policy
    SCORING_MAX_RETRIES: int = 3
    SCORING_RETRY_BACKOFF_SECONDS: float = 0.05

    # Rate limit applied to event ingestion
    EVENTS_RATE_LIMIT: str = "120/minute"

    # CORS configuration: comma-separated origins
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:8080"


settings = Settings()
