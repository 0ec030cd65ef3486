"""Application settings and configuration."""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Tradefolio"
    app_version: str = "0.1.0"

    database_url: str = "sqlite:///./tradefolio.db"
    log_level: str = "INFO"

    # Hot cache (Redis when configured, in-process dict otherwise)
    redis_url: Optional[str] = None
    cache_key_prefix: str = "price:live:"
    cache_ttl_seconds: int = 60
    live_max_age_seconds: int = 60

    # Quote providers
    provider_timeout_seconds: float = 5.0
    provider_max_quote_age_seconds: int = 5 * 24 * 3600
    provider_clock_skew_seconds: int = 300
    finnhub_api_key: Optional[str] = None
    coingecko_vs_currency: str = "eur"
    yahoo_rate_limit_per_minute: int = 100
    finnhub_rate_limit_per_minute: int = 60
    coingecko_rate_limit_per_minute: int = 10
    ing_rate_limit_per_minute: int = 50
    yahoo_max_workers: int = 4
    use_stub_provider: bool = False

    # Batch fetching
    batch_max_concurrent: int = 10
    batch_max_instruments: int = 100

    # Snapshot job
    snapshot_batch_size: int = 30
    snapshot_batch_delay_seconds: float = 1.0
    snapshot_max_instruments: int = 300
    snapshot_job_timeout_seconds: float = 50.0
    snapshot_recent_trades_days: int = 30
    snapshot_max_age_seconds: int = 300
    snapshot_min_interval_seconds: int = 600
    snapshot_interval_minutes: int = 15
    scheduler_enabled: bool = False
    cron_secret: Optional[str] = None

    def rate_limits(self) -> dict[str, int]:
        """Per-provider request budget per minute."""
        return {
            "yahoo": self.yahoo_rate_limit_per_minute,
            "finnhub": self.finnhub_rate_limit_per_minute,
            "coingecko": self.coingecko_rate_limit_per_minute,
            "ing": self.ing_rate_limit_per_minute,
        }


# Global settings instance (can be replaced at runtime)
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Return the current settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def set_settings(settings: Settings) -> None:
    """Set the global settings instance (used by tests and the scheduler)."""
    global _settings
    _settings = settings


def reset_settings() -> None:
    """Reset settings to force reload."""
    global _settings
    _settings = None
