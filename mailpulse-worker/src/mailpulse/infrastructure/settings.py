"""Application settings using Pydantic Settings for configuration management."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

from mailpulse.domain.models import PriorityLabel, ScopeMode


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # Application
    app_name: str = "Mailpulse"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"

    # API Server
    api_host: str = "0.0.0.0"
    api_port: int = 8080

    # Redis (counters, locks, batches)
    redis_url: str = "redis://127.0.0.1:6379/0"
    redis_socket_timeout: float = 5.0
    redis_connect_timeout: float = 2.0
    key_prefix: str = "mailpulse"

    # Kafka intake
    kafka_brokers: str = "localhost:9092"
    kafka_sasl_username: str | None = None
    kafka_sasl_password: SecretStr | None = None
    kafka_topic: str = "mailpulse.events.v1"
    kafka_group_id: str = "mailpulse-worker"
    kafka_dead_letter_topic: str | None = "mailpulse.events.dlq.v1"

    # Intake loop
    prefetch: int = Field(default=10, gt=0)
    poll_timeout_seconds: float = Field(default=1.0, gt=0)
    max_delivery_attempts: int = Field(default=5, gt=0)

    # Accumulation / debounce
    score_threshold: int = Field(default=10, gt=0)
    debounce_seconds: int = Field(default=60, gt=0)
    processed_ttl_seconds: int = Field(default=86400, gt=0)
    scope_mode: ScopeMode = ScopeMode.GLOBAL

    # Classifier stand-in
    classifier: Literal["random", "fixed", "keyword"] = "keyword"
    fixed_priority: PriorityLabel = PriorityLabel.MEDIUM
    classifier_seed: int | None = None

    # Dispatch
    dispatch_max_attempts: int = Field(default=5, gt=0)
    outbox_retry_batch: int = Field(default=10, gt=0)

    # Backoff while Redis is unreachable
    store_backoff_seconds: float = Field(default=1.0, gt=0)
    store_backoff_max_seconds: float = Field(default=30.0, gt=0)

    @computed_field
    @property
    def kafka_sasl_enabled(self) -> bool:
        """SASL_SSL is used only when credentials are configured."""
        return bool(self.kafka_sasl_username and self.kafka_sasl_password)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
