"""Shared pytest fixtures.

Provides an in-memory store on a manual clock, a recording dispatch sink and a
scripted message queue so the engine and worker run without Redis or Kafka.

Usage:
    def test_crossing(pipeline, sink):
        ...
        assert len(sink.notifications) == 1
"""

from __future__ import annotations

import json
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from itertools import count
from typing import Callable, Optional

import pytest
from loguru import logger

from mailpulse.application.pipeline import build_pipeline
from mailpulse.application.ports.message_queue import Delivery
from mailpulse.domain.entities.inbound_event import InboundEvent
from mailpulse.domain.errors import StoreUnavailableError
from mailpulse.domain.models import PriorityLabel
from mailpulse.infrastructure.classifiers import FixedPriorityClassifier
from mailpulse.infrastructure.stores import InMemoryKeyValueStore

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class ManualClock:
    """Drives both the store's TTL clock (seconds) and the scorer's wall clock."""

    def __init__(self, start: datetime = NOW) -> None:
        self.start = start
        self.elapsed = 0.0

    def monotonic(self) -> float:
        return self.elapsed

    def now(self) -> datetime:
        return self.start + timedelta(seconds=self.elapsed)

    def advance(self, seconds: float) -> None:
        self.elapsed += seconds


class RecordingSink:
    def __init__(self, fail_times: int = 0) -> None:
        self.notifications = []
        self.fail_times = fail_times
        self.calls = 0

    def dispatch(self, notification) -> None:
        self.calls += 1
        if self.calls <= self.fail_times:
            raise ConnectionError("sink down")
        self.notifications.append(notification)


class FlakyStore(InMemoryKeyValueStore):
    """Fails the named operations a set number of times.

    ``append_and_incr_once`` fails before writing; ``lost_reply`` fails after
    the write has been applied, like a reply lost on the wire.
    """

    def __init__(self, clock, failures: dict[str, int]):
        super().__init__(clock=clock)
        self.failures = dict(failures)

    def _maybe_fail(self, operation: str) -> None:
        if self.failures.get(operation, 0) > 0:
            self.failures[operation] -= 1
            raise StoreUnavailableError(f"{operation} unavailable")

    def append_and_incr_once(self, *args):
        self._maybe_fail("append_and_incr_once")
        total = super().append_and_incr_once(*args)
        self._maybe_fail("lost_reply")
        return total

    def set_if_absent(self, key, value, ttl_seconds):
        if ":lock:" in key:
            self._maybe_fail("lock")
        return super().set_if_absent(key, value, ttl_seconds)


class ScriptedQueue:
    """MessageQueue fake: hands out scripted batches and records settlements."""

    def __init__(self, batches: Optional[list[list[Delivery]]] = None, on_empty: Optional[Callable[[], None]] = None):
        self.batches = list(batches or [])
        self.on_empty = on_empty
        self.acked: list[Delivery] = []
        self.requeued: list[tuple[Delivery, str]] = []
        self.redeliveries: list[Delivery] = []
        self.dead_lettered: list[tuple[Delivery, str]] = []
        self.commits = 0
        self.closed = False

    def receive(self, max_messages: int, timeout: float) -> list[Delivery]:
        if not self.batches:
            if self.on_empty:
                self.on_empty()
            return []
        batch = self.batches.pop(0)
        assert len(batch) <= max_messages
        return batch

    def ack(self, delivery: Delivery) -> None:
        self.acked.append(delivery)

    def requeue(self, delivery: Delivery, reason: str, count_attempt: bool = True) -> None:
        self.requeued.append((delivery, reason))
        attempt = delivery.attempt + 1 if count_attempt else delivery.attempt
        self.redeliveries.append(replace(delivery, attempt=attempt))

    def dead_letter(self, delivery: Delivery, reason: str) -> None:
        self.dead_lettered.append((delivery, reason))

    def commit(self) -> bool:
        self.commits += 1
        return True

    def close(self) -> None:
        self.closed = True


_ids = count(1)


def make_event(
    scope_id: str = "user-1",
    subject: str = "Quarterly numbers",
    sent_at: Optional[str] = None,
    event_id: Optional[str] = None,
    sender: str = "alice@example.com",
) -> InboundEvent:
    return InboundEvent(
        event_id=event_id or f"evt-{next(_ids)}",
        scope_id=scope_id,
        sender=sender,
        recipients=("ops@example.com",),
        subject=subject,
        sent_at=sent_at if sent_at is not None else NOW.isoformat(),
        has_attachments=False,
    )


def make_delivery(event: Optional[InboundEvent] = None, attempt: int = 1, payload: Optional[bytes] = None) -> Delivery:
    if payload is None:
        payload = json.dumps((event or make_event()).to_dict()).encode()
    return Delivery(payload=payload, key=b"k", attempt=attempt)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def store(clock) -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore(clock=clock.monotonic)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def pipeline(store, sink, clock):
    return build_pipeline(
        store,
        FixedPriorityClassifier(PriorityLabel.HIGH),
        sink,
        threshold=10,
        debounce_seconds=60,
        clock=clock.now,
    )


@pytest.fixture
def log_records():
    """Capture loguru records emitted during the test."""
    records = []
    handler_id = logger.add(lambda message: records.append(message.record), level="DEBUG")
    yield records
    logger.remove(handler_id)
