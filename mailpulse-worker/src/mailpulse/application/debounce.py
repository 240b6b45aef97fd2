"""
Debounce gate: at most one notification per scope per cool-down window.

Many workers can observe the same threshold crossing at once. The first to
create the scope's lock key (create-if-absent with a TTL) wins, flushes the
counter and batch, and dispatches. Everyone else loses quietly: their score
stays in the total until the winner's flush and they carry on.

Per-scope states:
    IDLE      total < threshold
    ARMED     total >= threshold, lock not yet attempted by this caller
    NOTIFY    lock acquired, counter flushed, dispatch invoked
    LOCKED    lock key present until its TTL expires, then back to IDLE
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from loguru import logger

from mailpulse.application.accumulator import ScoreAccumulator
from mailpulse.application.dispatch_outbox import DispatchOutbox
from mailpulse.application.ports.dispatch_sink import DispatchSink
from mailpulse.application.ports.key_value_store import KeyValueStore
from mailpulse.application.scopes import ScopeKeys
from mailpulse.domain.entities.notification import Notification


class DistributedLock:
    """Named mutex with automatic expiry, backed by create-if-absent."""

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def acquire(self, name: str, ttl_seconds: int) -> bool:
        """Try to take the lock. True for exactly one caller until it expires."""
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        return self.store.set_if_absent(name, "1", ttl_seconds)

    def is_held(self, name: str) -> bool:
        return self.store.exists(name)

    def remaining(self, name: str) -> Optional[int]:
        """Seconds until the lock expires, or None when it is not held."""
        return self.store.ttl(name)


class GateState(str, Enum):
    IDLE = "idle"
    LOST = "lost"
    NOTIFIED = "notified"


@dataclass(frozen=True)
class GateResult:
    state: GateState
    total: int
    notification: Optional[Notification] = None
    delivered: bool = False


class DebounceGate:
    def __init__(
        self,
        accumulator: ScoreAccumulator,
        lock: DistributedLock,
        sink: DispatchSink,
        outbox: DispatchOutbox,
        threshold: int = 10,
        debounce_seconds: int = 60,
        keys: Optional[ScopeKeys] = None,
    ) -> None:
        if threshold <= 0:
            raise ValueError(f"threshold must be positive, got {threshold}")
        self.accumulator = accumulator
        self.lock = lock
        self.sink = sink
        self.outbox = outbox
        self.threshold = threshold
        self.debounce_seconds = debounce_seconds
        self.keys = keys or accumulator.keys

    def evaluate(self, scope: str, total: int) -> GateResult:
        """Decide whether ``total`` (as just observed for ``scope``) fires a notification."""
        if total < self.threshold:
            return GateResult(GateState.IDLE, total)

        if not self.lock.acquire(self.keys.lock(scope), self.debounce_seconds):
            logger.debug(f"Scope {scope} at {total} >= {self.threshold}, already notified this window")
            return GateResult(GateState.LOST, total)

        final_score, events = self.accumulator.flush(scope)
        notification = Notification(scope=scope, final_score=final_score, events=tuple(events))
        logger.info(
            f"Scope {scope} crossed threshold {self.threshold}: "
            f"score={final_score}, events={len(events)}, cool-down={self.debounce_seconds}s"
        )
        return GateResult(
            GateState.NOTIFIED,
            final_score,
            notification=notification,
            delivered=self._deliver(notification),
        )

    def _deliver(self, notification: Notification) -> bool:
        try:
            self.sink.dispatch(notification)
            return True
        except Exception as e:
            logger.error(f"Dispatch for scope {notification.scope} failed, parking in outbox: {e}")
            self.outbox.stash(notification, str(e))
            return False
