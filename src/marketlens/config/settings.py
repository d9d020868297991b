"""
Configuration settings for marketlens.

Uses pydantic-settings for environment variable management with nested models
for the provider, cache, analysis and logging domains.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from marketlens.config.constants import (
    ANOMALY_Z_THRESHOLD,
    LEVEL_CLUSTER_TOLERANCE,
    MAX_REPORTED_ANOMALIES,
    PIVOT_WINDOW,
)


class ProviderSettings(BaseSettings):
    """Candle provider (Yahoo Finance chart API) settings."""

    base_url: str = Field(
        default="https://query1.finance.yahoo.com", description="Primary chart API host"
    )
    backup_url: str = Field(
        default="https://query2.finance.yahoo.com", description="Backup chart API host"
    )
    timeout_seconds: float = Field(default=25.0, description="HTTP request timeout")
    symbol_suffix: str = Field(default=".NS", description="Exchange suffix appended to symbols")
    user_agent: str = Field(
        default="Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
        description="User-Agent header sent to the chart API",
    )

    model_config = SettingsConfigDict(
        env_prefix="PROVIDER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


class RedisSettings(BaseSettings):
    """Redis configuration settings."""

    host: str = Field(default="localhost", description="Redis host")
    port: int = Field(default=6379, description="Redis port")
    password: SecretStr | None = Field(default=None, description="Redis password")
    db: int = Field(default=0, description="Redis database number")

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def get_url(self) -> str:
        """
        Generate Redis connection URL.

        Returns:
            Redis connection string
        """
        if self.password:
            password = self.password.get_secret_value()
            return f"redis://:{password}@{self.host}:{self.port}/{self.db}"
        return f"redis://{self.host}:{self.port}/{self.db}"


class CacheSettings(BaseSettings):
    """Analysis result cache settings."""

    backend: Literal["memory", "redis", "none"] = Field(
        default="memory", description="Cache backend"
    )
    ttl_seconds: int = Field(default=300, description="Result time-to-live in seconds")
    max_entries: int = Field(default=256, description="In-memory cache capacity")

    model_config = SettingsConfigDict(
        env_prefix="CACHE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("ttl_seconds", "max_entries")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be positive")
        return value


class AnalysisSettings(BaseSettings):
    """Tunable analysis engine parameters."""

    pivot_window: int = Field(default=PIVOT_WINDOW, description="Pivot neighbourhood radius")
    cluster_tolerance: float = Field(
        default=LEVEL_CLUSTER_TOLERANCE, description="Relative level clustering tolerance"
    )
    anomaly_z_threshold: float = Field(
        default=ANOMALY_Z_THRESHOLD, description="Minimum |z| for a volume anomaly"
    )
    max_anomalies: int = Field(
        default=MAX_REPORTED_ANOMALIES, description="Most recent anomalies reported"
    )

    model_config = SettingsConfigDict(
        env_prefix="ANALYSIS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("pivot_window", "max_anomalies")
    @classmethod
    def _at_least_one(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value

    @field_validator("cluster_tolerance")
    @classmethod
    def _fraction(cls, value: float) -> float:
        if not 0 < value < 1:
            raise ValueError("cluster tolerance must be between 0 and 1")
        return value


class LoggingSettings(BaseSettings):
    """Logging configuration settings."""

    level: str = Field(default="INFO", description="Logging level")
    format: Literal["json", "pretty"] = Field(default="pretty", description="Renderer")
    file_path: str | None = Field(default=None, description="Optional log file path")

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


class Settings(BaseSettings):
    """
    Main settings class combining all configuration domains.

    Loads configuration from environment variables and .env file.
    """

    provider: ProviderSettings = Field(default_factory=ProviderSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    analysis: AnalysisSettings = Field(default_factory=AnalysisSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance (singleton pattern).

    Returns:
        Singleton Settings instance
    """
    return Settings()
