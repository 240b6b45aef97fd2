"""Wires the engine components around one store."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from mailpulse.application.accumulator import ScoreAccumulator
from mailpulse.application.debounce import DebounceGate, DistributedLock
from mailpulse.application.dispatch_outbox import DispatchOutbox
from mailpulse.application.ports.classifier import PriorityClassifier
from mailpulse.application.ports.dispatch_sink import DispatchSink
from mailpulse.application.ports.key_value_store import KeyValueStore
from mailpulse.application.scopes import ScopeKeys
from mailpulse.application.use_cases.process_event import ProcessEventUseCase
from mailpulse.domain.models import ScopeMode, ScopeStatus


@dataclass
class Pipeline:
    use_case: ProcessEventUseCase
    accumulator: ScoreAccumulator
    lock: DistributedLock
    gate: DebounceGate
    outbox: DispatchOutbox
    sink: DispatchSink
    keys: ScopeKeys

    def retry_dispatches(self, limit: int = 10) -> int:
        return self.outbox.retry_pending(self.sink, limit=limit)

    def status(self, scope: str) -> ScopeStatus:
        lock_key = self.keys.lock(scope)
        held = self.lock.is_held(lock_key)
        return ScopeStatus(
            scope=scope,
            total=self.accumulator.get(scope),
            threshold=self.gate.threshold,
            locked=held,
            lock_ttl_seconds=self.lock.remaining(lock_key) if held else None,
            pending_events=self.accumulator.pending_count(scope),
        )


def build_pipeline(
    store: KeyValueStore,
    classifier: PriorityClassifier,
    sink: DispatchSink,
    *,
    threshold: int = 10,
    debounce_seconds: int = 60,
    processed_ttl_seconds: int = 86400,
    dispatch_max_attempts: int = 5,
    scope_mode: ScopeMode = ScopeMode.GLOBAL,
    key_prefix: str = "mailpulse",
    clock: Optional[Callable[[], datetime]] = None,
) -> Pipeline:
    keys = ScopeKeys(key_prefix)
    accumulator = ScoreAccumulator(store, keys, processed_ttl_seconds=processed_ttl_seconds)
    lock = DistributedLock(store)
    outbox = DispatchOutbox(store, keys, max_attempts=dispatch_max_attempts)
    gate = DebounceGate(
        accumulator,
        lock,
        sink,
        outbox,
        threshold=threshold,
        debounce_seconds=debounce_seconds,
        keys=keys,
    )
    use_case = ProcessEventUseCase(
        classifier,
        accumulator,
        gate,
        scope_mode=scope_mode,
        clock=clock,
    )
    return Pipeline(
        use_case=use_case,
        accumulator=accumulator,
        lock=lock,
        gate=gate,
        outbox=outbox,
        sink=sink,
        keys=keys,
    )
