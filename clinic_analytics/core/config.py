"""Engine configuration using Pydantic Settings."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    # Application
    env: str = Field(default="dev", alias="ENV")
    debug: bool = Field(default=False, alias="DEBUG")
    log_json: bool = Field(default=True, alias="LOG_JSON")

    # Calendar
    clinic_timezone: str = Field(default="UTC", alias="CLINIC_TIMEZONE")
    default_date_range: str = Field(default="30d", alias="DEFAULT_DATE_RANGE")

    # Caches
    adapter_cache_capacity: int = Field(default=1000, alias="ADAPTER_CACHE_CAPACITY")
    classification_cache_capacity: int = Field(default=300, alias="CLASSIFICATION_CACHE_CAPACITY")
    bucket_cache_capacity: int = Field(default=200, alias="BUCKET_CACHE_CAPACITY")
    cache_thread_safe: bool = Field(default=False, alias="CACHE_THREAD_SAFE")

    # Host refetch policy, echoed back to the caller
    refresh_interval_ms: int = Field(default=60_000, alias="REFRESH_INTERVAL_MS")

    # Metrics
    max_decision_days: int = Field(default=365, alias="MAX_DECISION_DAYS")
    top_diagnoses_limit: int = Field(default=5, alias="TOP_DIAGNOSES_LIMIT")

    # Monitoring
    prometheus_enabled: bool = Field(default=False, alias="PROMETHEUS_ENABLED")

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.env.lower() == "prod"

    @property
    def is_testing(self) -> bool:
        """Check if running in testing environment."""
        return self.env.lower() in ("test", "testing")


# Global settings instance
settings = Settings()
