"""Intake worker - consumes classification events and drives the alert pipeline."""

from __future__ import annotations

import signal
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from loguru import logger

from mailpulse.application.debounce import GateState
from mailpulse.application.pipeline import Pipeline, build_pipeline
from mailpulse.application.ports.message_queue import Delivery, MessageQueue
from mailpulse.application.use_cases.process_event import decode_event
from mailpulse.domain.errors import MailpulseError, StoreUnavailableError
from mailpulse.infrastructure import RedisClientWrapper, configure_logging, get_kafka_queue, get_settings
from mailpulse.infrastructure.classifiers import build_classifier
from mailpulse.infrastructure.dispatch import LoggingDispatchSink
from mailpulse.infrastructure.settings import Settings
from mailpulse.infrastructure.stores import RedisKeyValueStore


class Settlement(str, Enum):
    ACK = "ack"
    REQUEUE = "requeue"
    DEAD_LETTER = "dead_letter"


@dataclass(frozen=True)
class HandlerResult:
    settlement: Settlement
    reason: str = ""
    notified: bool = False
    duplicate: bool = False
    store_outage: bool = False


@dataclass
class WorkerStats:
    """Track worker statistics."""
    received: int = 0
    acked: int = 0
    requeued: int = 0
    dead_lettered: int = 0
    duplicates: int = 0
    notifications: int = 0
    redispatched: int = 0
    store_outages: int = 0
    batches: int = 0
    last_batch: datetime | None = None
    by_settlement: dict[str, int] = field(default_factory=dict)


class IntakeWorker:
    """
    Bounded-concurrency consumer for the intake queue.

    Each cycle receives up to ``prefetch`` deliveries, runs them on a thread
    pool of the same size, settles every delivery, commits, then gives parked
    notifications another chance.

    Settlement:
    - processed or duplicate          -> ack
    - non-retriable (malformed)       -> dead-letter
    - store unavailable               -> requeue without spending an attempt,
                                         then pause intake with backoff
    - retriable, attempts remaining   -> requeue
    - retriable, attempts exhausted   -> dead-letter
    """

    def __init__(
        self,
        queue: MessageQueue,
        pipeline: Pipeline,
        prefetch: int = 10,
        poll_timeout: float = 1.0,
        max_delivery_attempts: int = 5,
        outbox_retry_batch: int = 10,
        store_backoff_seconds: float = 1.0,
        store_backoff_max_seconds: float = 30.0,
    ):
        self.queue = queue
        self.pipeline = pipeline
        self.prefetch = prefetch
        self.poll_timeout = poll_timeout
        self.max_delivery_attempts = max_delivery_attempts
        self.outbox_retry_batch = outbox_retry_batch
        self.store_backoff_seconds = store_backoff_seconds
        self.store_backoff_max_seconds = store_backoff_max_seconds
        self._store_delay = store_backoff_seconds
        self._wake = threading.Event()

        self.running = False
        self.stats = WorkerStats()
        self._executor = ThreadPoolExecutor(max_workers=prefetch, thread_name_prefix="intake")

    def handle(self, delivery: Delivery) -> HandlerResult:
        """Process one delivery and decide how to settle it. Never raises."""
        try:
            event = decode_event(delivery.payload)
            outcome = self.pipeline.use_case.execute(event)
        except StoreUnavailableError as e:
            logger.warning(f"Store unavailable, requeueing without spending an attempt: {e}")
            return HandlerResult(Settlement.REQUEUE, str(e), store_outage=True)
        except MailpulseError as e:
            if not e.retriable:
                logger.error(f"Rejecting message: {e}")
                return HandlerResult(Settlement.DEAD_LETTER, str(e))
            return self._retry_or_give_up(delivery, str(e))
        except Exception as e:
            logger.exception(f"Unexpected failure handling message: {e}")
            return self._retry_or_give_up(delivery, f"{type(e).__name__}: {e}")

        return HandlerResult(
            Settlement.ACK,
            notified=outcome.gate is GateState.NOTIFIED,
            duplicate=outcome.duplicate,
        )

    def _retry_or_give_up(self, delivery: Delivery, reason: str) -> HandlerResult:
        if delivery.attempt >= self.max_delivery_attempts:
            logger.error(f"Giving up after {delivery.attempt} attempts: {reason}")
            return HandlerResult(Settlement.DEAD_LETTER, f"attempts exhausted: {reason}")
        logger.warning(f"Requeueing (attempt {delivery.attempt}/{self.max_delivery_attempts}): {reason}")
        return HandlerResult(Settlement.REQUEUE, reason)

    def _settle(self, delivery: Delivery, result: HandlerResult) -> None:
        if result.settlement is Settlement.ACK:
            self.queue.ack(delivery)
            self.stats.acked += 1
        elif result.settlement is Settlement.REQUEUE:
            self.queue.requeue(delivery, result.reason, count_attempt=not result.store_outage)
            self.stats.requeued += 1
        else:
            self.queue.dead_letter(delivery, result.reason)
            self.stats.dead_lettered += 1

        self.stats.by_settlement[result.settlement.value] = (
            self.stats.by_settlement.get(result.settlement.value, 0) + 1
        )
        if result.duplicate:
            self.stats.duplicates += 1
        if result.notified:
            self.stats.notifications += 1
        if result.store_outage:
            self.stats.store_outages += 1

    def _retry_parked_dispatches(self) -> None:
        try:
            self.stats.redispatched += self.pipeline.retry_dispatches(limit=self.outbox_retry_batch)
        except StoreUnavailableError as e:
            logger.warning(f"Skipping outbox retry this cycle: {e}")

    def run_once(self) -> int:
        """Run a single receive/process/settle cycle. Returns deliveries handled."""
        deliveries = self.queue.receive(self.prefetch, self.poll_timeout)
        if deliveries:
            self.stats.received += len(deliveries)
            futures = [self._executor.submit(self.handle, d) for d in deliveries]
            results = [future.result() for future in futures]
            for delivery, result in zip(deliveries, results, strict=True):
                self._settle(delivery, result)
            self.queue.commit()

            self.stats.batches += 1
            self.stats.last_batch = datetime.now()
            logger.debug(f"Batch #{self.stats.batches}: {len(deliveries)} deliveries settled")

            if any(result.store_outage for result in results):
                self._back_off_for_store()
                return len(deliveries)
            self._store_delay = self.store_backoff_seconds

        self._retry_parked_dispatches()
        return len(deliveries)

    def _back_off_for_store(self) -> None:
        """Pause intake with exponential backoff while the store is down."""
        delay = self._store_delay
        logger.warning(f"Shared store unavailable; pausing intake for {delay:.1f}s")
        self._wake.wait(delay)
        self._store_delay = min(delay * 2, self.store_backoff_max_seconds)

    def _log_stats(self) -> None:
        """Log current worker statistics."""
        logger.info(
            f"Worker stats: "
            f"batches={self.stats.batches}, "
            f"received={self.stats.received}, "
            f"acked={self.stats.acked}, "
            f"requeued={self.stats.requeued}, "
            f"dead_lettered={self.stats.dead_lettered}, "
            f"duplicates={self.stats.duplicates}, "
            f"notifications={self.stats.notifications}, "
            f"redispatched={self.stats.redispatched}, "
            f"store_outages={self.stats.store_outages}"
        )

    def _handle_shutdown(self, signum, frame) -> None:
        """Handle graceful shutdown."""
        logger.info(f"Received signal {signum}, finishing in-flight batch...")
        self.running = False
        self._wake.set()

    def stop(self) -> None:
        self.running = False
        self._wake.set()

    def run(self) -> int:
        """Run the worker loop until stopped, then release the queue."""
        signal.signal(signal.SIGTERM, self._handle_shutdown)
        signal.signal(signal.SIGINT, self._handle_shutdown)

        logger.info(f"Intake worker starting (prefetch={self.prefetch}, max attempts={self.max_delivery_attempts})")
        self._wake.clear()
        self.running = True

        try:
            while self.running:
                try:
                    self.run_once()
                except Exception as e:
                    logger.error(f"Intake cycle failed: {e}")
        finally:
            self.shutdown()
        return 0

    def shutdown(self) -> None:
        """Wait for in-flight handlers, then release the queue."""
        self._executor.shutdown(wait=True)
        self.queue.close()
        logger.info("Worker shutdown complete")
        self._log_stats()


def create_pipeline_from_settings(settings: Settings, redis: RedisClientWrapper) -> Pipeline:
    """Build the engine against Redis with the configured classifier and log sink."""
    return build_pipeline(
        RedisKeyValueStore(redis.client),
        build_classifier(settings),
        LoggingDispatchSink(),
        threshold=settings.score_threshold,
        debounce_seconds=settings.debounce_seconds,
        processed_ttl_seconds=settings.processed_ttl_seconds,
        dispatch_max_attempts=settings.dispatch_max_attempts,
        scope_mode=settings.scope_mode,
        key_prefix=settings.key_prefix,
    )


def main() -> int:
    """Entry point for the intake worker."""
    import argparse

    parser = argparse.ArgumentParser(description="Mailpulse intake worker")
    parser.add_argument("--once", action="store_true", help="Run one receive cycle and exit")
    args = parser.parse_args()

    settings = get_settings()
    configure_logging(settings.log_level)

    logger.info("=" * 60)
    logger.info(f"{settings.app_name} intake worker v{settings.app_version}")
    logger.info("=" * 60)
    logger.info(
        f"Threshold={settings.score_threshold}, debounce={settings.debounce_seconds}s, "
        f"scope={settings.scope_mode.value}, classifier={settings.classifier}"
    )

    redis = RedisClientWrapper(settings)
    try:
        redis.connect()
        health = redis.health_check()
        if health["status"] != "healthy":
            raise RuntimeError(f"Redis unavailable: {health.get('error')}")
        pipeline = create_pipeline_from_settings(settings, redis)
        queue = get_kafka_queue(settings)
    except Exception as e:
        logger.error(f"Failed to initialize infrastructure: {e}")
        redis.disconnect()
        return 1

    worker = IntakeWorker(
        queue=queue,
        pipeline=pipeline,
        prefetch=settings.prefetch,
        poll_timeout=settings.poll_timeout_seconds,
        max_delivery_attempts=settings.max_delivery_attempts,
        outbox_retry_batch=settings.outbox_retry_batch,
        store_backoff_seconds=settings.store_backoff_seconds,
        store_backoff_max_seconds=settings.store_backoff_max_seconds,
    )

    try:
        if args.once:
            worker.run_once()
            worker.shutdown()
            return 0
        return worker.run()
    finally:
        redis.disconnect()


if __name__ == "__main__":
    raise SystemExit(main())
