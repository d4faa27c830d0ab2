from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    Durations keep the units operators already use in .env files; the
    ``*_ms`` properties convert them for the rate limiter and cache.
    """

    # development | production
    environment: str = "production"

    # Search rate limiting (blocking fixed window)
    rate_limit_max_requests: int = 10
    rate_limit_window_seconds: int = 60
    rate_limit_block_duration_minutes: int = 5
    rate_limit_cleanup_interval_minutes: int = 5

    # Generic /api/ rate limiting (fixed window, no block)
    api_rate_limit_max_requests: int = 100
    api_rate_limit_window_seconds: int = 60

    # Search result cache
    cache_ttl_minutes: int = 5
    cache_cleanup_interval_minutes: int = 10

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    @field_validator(
        "rate_limit_max_requests",
        "rate_limit_window_seconds",
        "rate_limit_block_duration_minutes",
        "rate_limit_cleanup_interval_minutes",
        "api_rate_limit_max_requests",
        "api_rate_limit_window_seconds",
    )
    @classmethod
    def validate_rate_limit_positive(cls, v: int) -> int:
        """Validate rate limit values are positive."""
        if v < 1:
            raise ValueError("Rate limit values must be at least 1")
        return v

    @field_validator("cache_ttl_minutes", "cache_cleanup_interval_minutes")
    @classmethod
    def validate_cache_positive(cls, v: int) -> int:
        """Validate cache durations are positive."""
        if v < 1:
            raise ValueError("Cache durations must be at least 1 minute")
        return v

    @field_validator("environment")
    @classmethod
    def normalize_environment(cls, v: str) -> str:
        return v.strip().lower()

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def rate_limit_window_ms(self) -> int:
        return self.rate_limit_window_seconds * 1000

    @property
    def rate_limit_block_duration_ms(self) -> int:
        return self.rate_limit_block_duration_minutes * 60 * 1000

    @property
    def rate_limit_cleanup_interval_ms(self) -> int:
        return self.rate_limit_cleanup_interval_minutes * 60 * 1000

    @property
    def api_rate_limit_window_ms(self) -> int:
        return self.api_rate_limit_window_seconds * 1000

    @property
    def cache_ttl_ms(self) -> int:
        return self.cache_ttl_minutes * 60 * 1000

    @property
    def cache_cleanup_interval_ms(self) -> int:
        return self.cache_cleanup_interval_minutes * 60 * 1000

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Global settings instance
settings = Settings()
