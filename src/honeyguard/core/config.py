"""HoneyGuard configuration management using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === Application ===
    app_name: str = "HoneyGuard"
    app_env: Literal["development", "staging", "production"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_max_field_length: int = Field(
        default=256,
        ge=16,
        description="Longest attacker-supplied string written to a log event",
    )

    # === Pattern memory ===
    signature_memory_capacity: int = Field(
        default=10_000,
        ge=1,
        description="Max distinct tag signatures remembered before LRU eviction",
    )
    timing_history_size: int = Field(
        default=100,
        ge=1,
        le=10_000,
        description="Timestamps kept per source IP",
    )
    timing_window_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Trailing window for the request timing check",
    )

    # === Honeypot ingestion ===
    honeypot_buffer_size: int = Field(
        default=1000,
        ge=1,
        description="Events kept in the buffer after each flush",
    )
    honeypot_flush_interval: float = Field(
        default=300.0,
        gt=0,
        description="Seconds between honeypot buffer summaries",
    )

    # === Anomaly sweep ===
    sweep_interval: float = Field(default=3600.0, gt=0)
    sweep_lookback_seconds: float = Field(default=3600.0, gt=0)
    sweep_threshold: float = Field(default=0.7, ge=0.0, le=1.0)

    # === Alerting ===
    alert_anomaly_threshold: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Anomaly score above which a request matches the anomalous traffic signature",
    )

    # === Misc ===
    isolation_seed: int | None = Field(
        default=None,
        description="Seed for the path-length estimate (None = nondeterministic)",
    )
    event_history_size: int = Field(default=2000, ge=1)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
