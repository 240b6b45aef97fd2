"""
Kafka intake queue with manual acknowledgement.

Kafka has no per-message nack, so settlement is expressed with offsets and
republishing:

- ack          store the offset
- requeue      republish to the source topic with the attempt header bumped
               (kept as is when the attempt is not counted), then store the
               offset
- dead_letter  publish to the dead-letter topic (or log and drop when none is
               configured), then store the offset

``commit`` flushes the producer first and only commits stored offsets when
every republish was delivered. Otherwise the consumer is rewound to the start
of the batch so nothing is lost.
"""

from __future__ import annotations

from typing import Optional

from confluent_kafka import Consumer, KafkaError, Producer, TopicPartition
from loguru import logger

from mailpulse.application.ports.message_queue import Delivery

ATTEMPT_HEADER = "x-delivery-attempt"
REQUEUE_REASON_HEADER = "x-requeue-reason"
DEAD_LETTER_REASON_HEADER = "x-dead-letter-reason"
ORIGINAL_TOPIC_HEADER = "x-original-topic"


def attempt_from_headers(headers: Optional[list]) -> int:
    """Delivery attempt recorded in message headers; 1 when absent or garbled."""
    for name, value in headers or []:
        if name != ATTEMPT_HEADER or value is None:
            continue
        try:
            raw = value.decode("utf-8") if isinstance(value, bytes) else str(value)
            return max(1, int(raw))
        except ValueError:
            return 1
    return 1


class KafkaMessageQueue:
    """Consumes the intake topic; settles deliveries per batch."""

    def __init__(
        self,
        brokers: str,
        topic: str,
        group_id: str,
        dead_letter_topic: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        consumer: Optional[Consumer] = None,
        producer: Optional[Producer] = None,
    ):
        self.topic = topic
        self.dead_letter_topic = dead_letter_topic

        common = {"bootstrap.servers": brokers}
        if username and password:
            common.update(
                {
                    "security.protocol": "SASL_SSL",
                    "sasl.mechanisms": "PLAIN",
                    "sasl.username": username,
                    "sasl.password": password,
                }
            )

        self.consumer = consumer or Consumer(
            {
                **common,
                "group.id": group_id,
                "auto.offset.reset": "earliest",
                # Offsets are stored explicitly once a delivery is settled
                "enable.auto.commit": False,
                "enable.auto.offset.store": False,
            }
        )
        self.producer = producer or Producer(
            {
                **common,
                "acks": "all",
                "retries": 3,
                "retry.backoff.ms": 1000,
                "enable.idempotence": True,
            }
        )
        self.consumer.subscribe([topic])

        self._delivery_errors: list[str] = []
        self._batch_start: dict[tuple[str, int], int] = {}
        self._pending_settlements = 0

        logger.info(f"Kafka intake initialized for topic {topic} (group {group_id})")
        if dead_letter_topic:
            logger.info(f"Dead-letter topic: {dead_letter_topic}")
        else:
            logger.warning("No dead-letter topic configured; rejected messages will be dropped")

    def _delivery_callback(self, err, msg):
        """Handle delivery confirmation."""
        if err:
            logger.error(f"Delivery failed: {err}")
            self._delivery_errors.append(str(err))
        else:
            logger.debug(f"Delivered to {msg.topic()}[{msg.partition()}] @ {msg.offset()}")

    def receive(self, max_messages: int, timeout: float) -> list[Delivery]:
        deliveries: list[Delivery] = []
        for msg in self.consumer.consume(num_messages=max_messages, timeout=timeout):
            err = msg.error()
            if err:
                if err.code() != KafkaError._PARTITION_EOF:
                    logger.error(f"Consumer error: {err}")
                continue

            position = (msg.topic(), msg.partition())
            self._batch_start.setdefault(position, msg.offset())
            deliveries.append(
                Delivery(
                    payload=msg.value() or b"",
                    key=msg.key(),
                    attempt=attempt_from_headers(msg.headers()),
                    handle=msg,
                )
            )
        return deliveries

    def _settle(self, delivery: Delivery) -> None:
        self.consumer.store_offsets(message=delivery.handle)
        self._pending_settlements += 1

    def ack(self, delivery: Delivery) -> None:
        self._settle(delivery)

    def requeue(self, delivery: Delivery, reason: str, count_attempt: bool = True) -> None:
        attempt = delivery.attempt + 1 if count_attempt else delivery.attempt
        self.producer.produce(
            topic=self.topic,
            key=delivery.key,
            value=delivery.payload,
            headers=[
                (ATTEMPT_HEADER, str(attempt).encode()),
                (REQUEUE_REASON_HEADER, reason.encode("utf-8")),
            ],
            callback=self._delivery_callback,
        )
        self._settle(delivery)

    def dead_letter(self, delivery: Delivery, reason: str) -> None:
        if self.dead_letter_topic:
            self.producer.produce(
                topic=self.dead_letter_topic,
                key=delivery.key,
                value=delivery.payload,
                headers=[
                    (ATTEMPT_HEADER, str(delivery.attempt).encode()),
                    (DEAD_LETTER_REASON_HEADER, reason.encode("utf-8")),
                    (ORIGINAL_TOPIC_HEADER, self.topic.encode()),
                ],
                callback=self._delivery_callback,
            )
        else:
            logger.error(f"Dropping rejected message (no dead-letter topic): {reason}")
        self._settle(delivery)

    def commit(self) -> bool:
        """Commit settled offsets. Returns False when the batch was rewound instead."""
        if not self._pending_settlements:
            self._batch_start.clear()
            return True

        remaining = self.producer.flush(10.0)
        errors = self._delivery_errors.copy()
        self._delivery_errors.clear()

        if remaining > 0 or errors:
            logger.error(
                f"Republish incomplete (pending={remaining}, errors={errors}); rewinding batch for redelivery"
            )
            for (topic, partition), offset in self._batch_start.items():
                self.consumer.seek(TopicPartition(topic, partition, offset))
            self._batch_start.clear()
            self._pending_settlements = 0
            return False

        self.consumer.commit(asynchronous=False)
        self._batch_start.clear()
        self._pending_settlements = 0
        return True

    def close(self) -> None:
        remaining = self.producer.flush(30.0)
        if remaining > 0:
            logger.warning(f"{remaining} republished messages still pending at shutdown")
        self.consumer.close()
        logger.info("Kafka intake closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
