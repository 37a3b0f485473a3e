from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "Newsfeed API"
    env: str = "dev"
    log_level: str = "INFO"
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    feed_source: str = "childsafety"
    feed_title: str = "ChildSafety.gov.au - News (Latest)"
    list_url: str = "https://www.childsafety.gov.au/news"
    article_path_prefix: str = "/news"

    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/122.0 Safari/537.36"
    )
    accept_language: str = "en-AU,en;q=0.9"
    feed_referer: str | None = "https://www.childsafety.gov.au/"

    fetch_timeout_seconds: float = 12.0
    fetch_max_attempts: int = 3
    fetch_backoff_base_seconds: float = 0.25

    freshness_interval_seconds: int = 1800
    refresh_jitter_seconds: float = 0.75
    snapshot_ttl_seconds: int = 7 * 24 * 60 * 60
    client_max_age_seconds: int = 60

    max_items: int = 15
    summary_max_length: int = 500
    accept_empty_extraction: bool = False

    store_backend: str = "redis"
    redis_url: str = "redis://localhost:6379/0"
    celery_broker_url: str = "redis://localhost:6379/0"
    celery_result_backend: str = "redis://localhost:6379/1"
    celery_eager_mode: bool = False
    refresh_schedule_minutes: int = 30

    api_auth_enabled: bool = True
    api_auth_token: str | None = None

    @model_validator(mode="after")
    def validate_feed_settings(self) -> "Settings":
        if self.api_auth_enabled and not self.api_auth_token and self.env not in {"test"}:
            raise ValueError("api_auth_token is required when api_auth_enabled=true")
        if self.store_backend not in {"redis", "memory"}:
            raise ValueError(f"Unsupported store_backend: {self.store_backend}")
        if self.fetch_max_attempts < 1:
            raise ValueError("fetch_max_attempts must be at least 1")
        if self.refresh_schedule_minutes < 1:
            raise ValueError("refresh_schedule_minutes must be at least 1")
        if self.refresh_jitter_seconds < 0 or self.freshness_interval_seconds < 0:
            raise ValueError("refresh_jitter_seconds and freshness_interval_seconds must not be negative")
        if not self.article_path_prefix.startswith("/"):
            raise ValueError("article_path_prefix must start with '/'")
        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()
