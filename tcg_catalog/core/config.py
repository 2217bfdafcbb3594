"""
Application configuration settings.

All configuration is loaded from environment variables with sensible defaults.
"""
from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "TCG Catalog ETL"
    api_debug: bool = True

    # Database
    postgres_host: str = "db"
    postgres_port: int = 5432
    postgres_user: str = "tcg_user"
    postgres_password: str = "tcg_password"
    postgres_db: str = "tcg_catalog"
    database_url: str | None = None

    # Redis / Celery
    redis_url: str = "redis://redis:6379/0"
    celery_broker_url: str = "redis://redis:6379/0"
    celery_result_backend: str = "redis://redis:6379/0"
    image_queue_name: str = "image-processing"

    # Scryfall API
    # Rate limit: 50-100ms between requests (10 requests/second average)
    scryfall_base_url: str = "https://api.scryfall.com"
    scryfall_rate_limit_ms: int = 100
    scraper_user_agent: str = "TCGCatalog/1.0"
    scraper_max_retries: int = 3
    scraper_backoff_factor: float = 2.0

    # Pokemon TCG API (an API key lifts the anonymous rate limit)
    pokemon_tcg_base_url: str = "https://api.pokemontcg.io/v2"
    pokemon_tcg_api_key: str | None = None
    pokemon_tcg_rate_limit_ms: int = 1000

    # YGOPRODeck API: 20 requests/second hard limit
    ygoprodeck_base_url: str = "https://db.ygoprodeck.com/api/v7"
    ygoprodeck_rate_limit_ms: int = 100

    # One Piece card API
    onepiece_base_url: str = "https://api.onepiece-cardgame.dev/v1"
    onepiece_rate_limit_ms: int = 150

    # ETL pipeline
    # Low concurrency by default to respect upstream API rate limits
    etl_batch_size: int = 100
    etl_rate_limit_delay_ms: int = 1000
    etl_concurrency: int = 2
    etl_max_retries: int = 5
    etl_retry_base_delay_ms: int = 1000
    etl_retry_max_delay_ms: int = 30000
    etl_retry_jitter: bool = True
    etl_skip_images: bool = False
    etl_force_update: bool = False
    etl_backfill_new_prints: bool = True
    etl_max_errors_per_batch: int = 10

    # Game-level circuit breaker (card-level breakers use a static table)
    etl_circuit_breaker_threshold: int = 10
    etl_circuit_breaker_reset_timeout_ms: int = 60000

    # Scheduled syncs: games refreshed by the nightly beat schedule
    etl_scheduled_games: list[str] = ["MTG"]

    @field_validator("etl_batch_size", "etl_concurrency")
    @classmethod
    def must_be_positive(cls, v: int) -> int:
        """Batch size and worker count must be at least 1."""
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @field_validator("etl_max_retries", "etl_rate_limit_delay_ms", "etl_max_errors_per_batch")
    @classmethod
    def must_not_be_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("must be >= 0")
        return v

    @property
    def database_url_computed(self) -> str:
        """Compute database URL from components if not explicitly set."""
        if self.database_url:
            return self.database_url
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
