"""Engine settings using Pydantic Settings.

Centralized configuration for the apuração engine. Every component also
accepts explicit constructor arguments; settings only provide defaults.

Environment prefixes:
- APURACAO_: engine behavior (rule threshold, worker pool)
- APURACAO_SCORING_: confidence scoring weights
- RESILIENCE_: retry/backoff for store and assistant calls
- DATABASE_: SQLAlchemy connection
"""

import logging
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class ScoringSettings(BaseSettings):
    """Penalties and bonus of the batch confidence score."""

    model_config = SettingsConfigDict(
        env_prefix="APURACAO_SCORING_",
        extra="ignore",
    )

    empty_items_penalty: int = Field(default=50, description="Penalty when no items were assessed")
    zero_tax_penalty: int = Field(default=20, description="Penalty when total tax due is zero")
    substitution_anomaly_penalty: int = Field(
        default=10, description="Penalty when substitution due exceeds tax due"
    )
    coverage_bonus_max: int = Field(
        default=20, description="Bonus when every item had at least one rule applied"
    )


class ResilienceSettings(BaseSettings):
    """Resilience patterns configuration."""

    model_config = SettingsConfigDict(
        env_prefix="RESILIENCE_",
        extra="ignore",
    )

    retry_max_attempts: int = Field(default=3, ge=1, description="Max retry attempts")
    retry_initial_delay: float = Field(default=0.5, ge=0, description="Initial delay in seconds")
    retry_backoff_multiplier: float = Field(default=2.0, ge=1, description="Backoff multiplier")
    retry_max_delay: float = Field(default=10.0, ge=0, description="Max delay between retries")


class DatabaseSettings(BaseSettings):
    """SQLAlchemy connection for rules, period credits and results."""

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_",
        extra="ignore",
    )

    url: str = Field(default="sqlite:///data/apuracao.db", description="SQLAlchemy URL")
    echo: bool = Field(default=False, description="Log SQL statements")


class Settings(BaseSettings):
    """Main engine settings."""

    model_config = SettingsConfigDict(
        env_prefix="APURACAO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    rule_confidence_threshold: int = Field(
        default=70, ge=0, le=100,
        description="Minimum confidence for an extracted rule to be activated"
    )
    max_workers: int = Field(
        default=8, ge=1, description="Upper bound of the item worker pool"
    )
    auto_extract_rules: bool = Field(
        default=False, description="Ask the extraction assistant before loading rules"
    )
    default_jurisdiction: str = Field(
        default="", description="UF used when a run does not name one"
    )

    @field_validator("default_jurisdiction", mode="before")
    def normalize_jurisdiction(cls, v):
        if isinstance(v, str):
            v = v.strip().upper()
        return v

    # Nested settings (loaded separately)
    @property
    def scoring(self) -> ScoringSettings:
        return ScoringSettings()

    @property
    def resilience(self) -> ResilienceSettings:
        return ResilienceSettings()

    @property
    def database(self) -> DatabaseSettings:
        return DatabaseSettings()


@lru_cache
def get_settings() -> Settings:
    """
    Get cached engine settings instance.

    Returns:
        Settings: Cached settings loaded from environment.
    """
    return Settings()
