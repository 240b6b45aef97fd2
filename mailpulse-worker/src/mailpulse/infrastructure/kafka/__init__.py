"""Kafka transport for the intake queue."""

from mailpulse.infrastructure.kafka.queue import KafkaMessageQueue, attempt_from_headers

__all__ = [
    "KafkaMessageQueue",
    "attempt_from_headers",
]
