# src/mailpulse/infrastructure/__init__.py
"""Infrastructure layer - external services, stores, transports and configuration."""

from mailpulse.infrastructure.logging_config import configure_logging
from mailpulse.infrastructure.redis_client import RedisClientWrapper, redis_lifespan
from mailpulse.infrastructure.settings import Settings, get_settings


# Kafka is imported lazily so the API process never loads librdkafka
def get_kafka_queue(settings: Settings | None = None):
    """Build the Kafka intake queue from settings (lazy import)."""
    from mailpulse.infrastructure.kafka.queue import KafkaMessageQueue

    settings = settings or get_settings()
    username = password = None
    if settings.kafka_sasl_enabled:
        username = settings.kafka_sasl_username
        password = settings.kafka_sasl_password.get_secret_value()
    return KafkaMessageQueue(
        brokers=settings.kafka_brokers,
        topic=settings.kafka_topic,
        group_id=settings.kafka_group_id,
        dead_letter_topic=settings.kafka_dead_letter_topic,
        username=username,
        password=password,
    )


__all__ = [
    # Settings
    "Settings",
    "get_settings",
    # Logging
    "configure_logging",
    # Redis
    "RedisClientWrapper",
    "redis_lifespan",
    # Kafka
    "get_kafka_queue",
]
