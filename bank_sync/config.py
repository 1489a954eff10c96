"""Configuration management using Pydantic Settings"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    database_url: str = "sqlite:///./bank_sync.db"

    # External Services
    aggregator_api_base: str = "http://localhost:8001"

    # Service
    service_name: str = "bank-sync"
    log_level: str = "INFO"

    # HTTP Client
    http_timeout_seconds: float = 10.0

    # Fetch planning
    update_interval_hours: float = 6.0
    full_sync_window_days: int = 90
    incremental_fallback_days: int = 7

    # Retry policy: fixed delay, no exponential growth
    sync_max_attempts: int = 3
    sync_retry_delay_seconds: float = 2.0

    # Cache TTLs (advisory, read by callers)
    transactions_cache_ttl_seconds: float = 300.0
    recurring_cache_ttl_hours: float = 24.0
    accounts_cache_ttl_hours: float = 24.0

    # Change notifications
    notification_debounce_seconds: float = 2.0

    # Link confirmation polling
    link_confirm_attempts: int = 5
    link_confirm_interval_seconds: float = 2.0


settings = Settings()
