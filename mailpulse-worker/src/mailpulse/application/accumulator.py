"""Per-scope score accumulation on top of the shared store.

All safety comes from the store's atomic primitives; nothing here holds a
process-local lock or does a read-modify-write.
"""

from __future__ import annotations

import json
from typing import Optional

from loguru import logger

from mailpulse.application.ports.key_value_store import KeyValueStore
from mailpulse.application.scopes import ScopeKeys
from mailpulse.domain.entities.inbound_event import InboundEvent


class ScoreAccumulator:
    """Atomic counters plus the scope's pending batch of contributing events."""

    def __init__(
        self,
        store: KeyValueStore,
        keys: Optional[ScopeKeys] = None,
        processed_ttl_seconds: int = 86400,
    ) -> None:
        self.store = store
        self.keys = keys or ScopeKeys()
        self.processed_ttl_seconds = processed_ttl_seconds

    def add_and_get(self, scope: str, delta: int, event: Optional[InboundEvent] = None) -> int:
        """Add ``delta`` to the scope total and return the new total.

        When ``event`` is given it is appended to the scope's pending batch in
        the same atomic operation, so the batch never disagrees with the
        counter.
        """
        if delta < 0:
            raise ValueError(f"delta must be non-negative, got {delta}")

        if event is None:
            total = self.store.incr_by(self.keys.score(scope), delta)
        else:
            total = self.store.append_and_incr(
                self.keys.batch(scope),
                json.dumps(event.to_dict()),
                self.keys.score(scope),
                delta,
            )
        logger.debug(f"Scope {scope}: +{delta} -> {total}")
        return total

    def add_once(self, scope: str, delta: int, event: InboundEvent) -> Optional[int]:
        """Count ``event`` at most once per ``processed_ttl_seconds``.

        The processed marker, the batch append and the increment are one
        atomic store operation, so a lost reply can be retried safely: either
        all three happened or none did. Returns the new total, or None when
        the event id was already counted.
        """
        if delta < 0:
            raise ValueError(f"delta must be non-negative, got {delta}")

        total = self.store.append_and_incr_once(
            self.keys.processed(event.event_id),
            self.processed_ttl_seconds,
            self.keys.batch(scope),
            json.dumps(event.to_dict()),
            self.keys.score(scope),
            delta,
        )
        if total is not None:
            logger.debug(f"Scope {scope}: +{delta} -> {total}")
        return total

    def get(self, scope: str) -> int:
        return self.store.get_int(self.keys.score(scope))

    def reset_to_zero(self, scope: str) -> int:
        """Unconditionally zero the counter. Returns the value it replaced."""
        previous = self.store.set_int(self.keys.score(scope), 0)
        logger.info(f"Reset counter for scope {scope} (was {previous})")
        return previous

    def flush(self, scope: str) -> tuple[int, list[InboundEvent]]:
        """Zero the counter and drain the pending batch in one atomic step.

        Returns the total that was reset together with the batch in arrival
        order.
        """
        total, items = self.store.take_and_reset(self.keys.score(scope), self.keys.batch(scope))
        events = [InboundEvent.from_dict(json.loads(item)) for item in items]
        return total, events

    def pending_count(self, scope: str) -> int:
        return self.store.list_length(self.keys.batch(scope))
