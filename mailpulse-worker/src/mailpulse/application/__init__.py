"""Application layer - accumulation, debounce and the per-event use case."""

from mailpulse.application.accumulator import ScoreAccumulator
from mailpulse.application.debounce import DebounceGate, DistributedLock, GateResult, GateState
from mailpulse.application.dispatch_outbox import DispatchOutbox
from mailpulse.application.pipeline import Pipeline, build_pipeline
from mailpulse.application.scopes import GLOBAL_SCOPE, ScopeKeys, resolve_scope
from mailpulse.application.use_cases.process_event import (
    ProcessEventUseCase,
    ProcessOutcome,
    decode_event,
)

__all__ = [
    "ScoreAccumulator",
    "DebounceGate",
    "DistributedLock",
    "GateResult",
    "GateState",
    "DispatchOutbox",
    "Pipeline",
    "build_pipeline",
    "GLOBAL_SCOPE",
    "ScopeKeys",
    "resolve_scope",
    "ProcessEventUseCase",
    "ProcessOutcome",
    "decode_event",
]
