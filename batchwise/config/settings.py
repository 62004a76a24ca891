"""Application settings loaded from environment and YAML config."""

from functools import lru_cache
from pathlib import Path
from typing import Self

import yaml
from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from batchwise.batch.queue import BatchWindow
from batchwise.retry.policy import RetryPolicy


class BatchingSettings(BaseModel):
    """Batch queue configuration."""

    batch_size: int = Field(default=10, ge=1)
    inter_batch_delay_ms: int = Field(default=100, ge=0)

    def to_window(self) -> BatchWindow:
        return BatchWindow(
            batch_size=self.batch_size,
            inter_batch_delay_ms=self.inter_batch_delay_ms,
        )


class RetrySettings(BaseModel):
    """Default retry policy for wrapped operations."""

    max_attempts: int = Field(default=3, ge=1)
    initial_delay_ms: float = Field(default=100.0, ge=0)
    backoff_multiplier: float = Field(default=2.0, ge=1)
    max_delay_ms: float = Field(default=30000.0, ge=0)

    def to_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.max_attempts,
            initial_delay_ms=self.initial_delay_ms,
            backoff_multiplier=self.backoff_multiplier,
            max_delay_ms=self.max_delay_ms,
        )


class LoggingSettings(BaseModel):
    """Per-component log level overrides."""

    component_levels: dict[str, str] = Field(default_factory=dict)


class AppConfig(BaseModel):
    """Application configuration loaded from batching.yaml."""

    batching: BatchingSettings = Field(default_factory=BatchingSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    retry_batches: bool = True
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @model_validator(mode="after")
    def validate_config(self) -> Self:
        """Validate configuration consistency."""
        if self.retry_batches and self.retry.max_attempts == 1:
            raise ValueError("retry_batches requires retry.max_attempts > 1")
        return self


class Settings(BaseSettings):
    """Root settings combining environment variables and YAML config."""

    model_config = SettingsConfigDict(
        env_prefix="BATCHWISE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Environment variables
    environment: str = "development"
    log_level: str = "INFO"
    config_path: Path = Path("./config")

    # Loaded from YAML
    app: AppConfig = Field(default_factory=AppConfig)

    @model_validator(mode="after")
    def load_yaml_config(self) -> Self:
        """Load batching.yaml and merge with defaults."""
        config_file = self.config_path / "batching.yaml"

        if config_file.exists():
            with open(config_file) as f:
                yaml_config = yaml.safe_load(f) or {}
            self.app = AppConfig.model_validate(yaml_config)

        return self

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance. Call once at startup."""
    return Settings()
