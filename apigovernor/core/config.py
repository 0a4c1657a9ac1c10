from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Governor settings loaded from environment variables.

    All settings can be configured via ``GOVERNOR_``-prefixed environment
    variables or a .env file. Durations are in seconds.
    """

    # Admission policy
    min_interval_seconds: float = 15.0  # Cool-down between any two calls
    max_calls_per_window: int = 200
    window_seconds: float = 3600.0  # 1 hour rolling budget

    # Back-off applied when the upstream throttles without saying for how long
    default_retry_after_seconds: float = 30.0

    # Result cache
    cache_ttl_seconds: float = 300.0  # 5 minutes
    cache_max_entries: int = 10000  # 0 disables the bound

    # Upper bound on a single wrapped operation; None disables it
    operation_timeout_seconds: float | None = 60.0

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    # Meta Graph API settings
    meta_graph_base_url: str = "https://graph.facebook.com/v18.0"
    httpx_timeout: float = 30.0
    httpx_connect_timeout: float = 10.0

    @field_validator("max_calls_per_window")
    @classmethod
    def validate_budget_positive(cls, v: int) -> int:
        """Validate the per-window budget is positive."""
        if v < 1:
            raise ValueError("max_calls_per_window must be at least 1")
        return v

    @field_validator("cache_max_entries")
    @classmethod
    def validate_cache_size(cls, v: int) -> int:
        if v < 0:
            raise ValueError("cache_max_entries must be >= 0")
        return v

    @field_validator("min_interval_seconds")
    @classmethod
    def validate_interval_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("min_interval_seconds must be >= 0")
        return v

    @field_validator(
        "window_seconds",
        "cache_ttl_seconds",
        "default_retry_after_seconds",
        "httpx_timeout",
        "httpx_connect_timeout",
    )
    @classmethod
    def validate_duration_positive(cls, v: float) -> float:
        """Validate duration values are positive."""
        if v <= 0:
            raise ValueError("Duration values must be positive")
        return v

    @field_validator("operation_timeout_seconds")
    @classmethod
    def validate_operation_timeout(cls, v: float | None) -> float | None:
        if v is not None and v <= 0:
            raise ValueError("operation_timeout_seconds must be positive or unset")
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        value = v.strip().lower()
        if value not in ("text", "structured", "json"):
            raise ValueError("log_format must be one of: text, structured, json")
        return value

    model_config = SettingsConfigDict(
        env_prefix="GOVERNOR_", env_file=".env", extra="ignore"
    )


# Global settings instance
settings = Settings()
