"""Classify, score, accumulate and gate a single inbound event."""

from __future__ import annotations

import json
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Callable, Optional

from loguru import logger
from pydantic import ValidationError

from mailpulse.application.accumulator import ScoreAccumulator
from mailpulse.application.debounce import DebounceGate, GateState
from mailpulse.application.ports.classifier import PriorityClassifier
from mailpulse.application.scopes import resolve_scope
from mailpulse.domain.entities.inbound_event import InboundEvent
from mailpulse.domain.errors import ClassificationError, MailpulseError, MalformedEventError
from mailpulse.domain.models import InboundEventPayload, PriorityLabel, ScopeMode
from mailpulse.domain.scoring import score


def decode_event(payload: bytes) -> InboundEvent:
    """Deserialize a queue payload. Raises MalformedEventError on anything unusable."""
    try:
        data = json.loads(payload)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedEventError("Payload is not valid JSON", cause=e) from e

    if not isinstance(data, dict):
        raise MalformedEventError(f"Payload must be a JSON object, got {type(data).__name__}")

    try:
        return InboundEventPayload.model_validate(data).to_event()
    except ValidationError as e:
        raise MalformedEventError("Payload does not describe an inbound event", cause=e) from e


@dataclass(frozen=True)
class ProcessOutcome:
    event_id: str
    scope: str
    priority: PriorityLabel
    points: int
    total: int
    gate: GateState
    duplicate: bool = False


class ProcessEventUseCase:
    """Runs classify -> score -> atomic add -> (maybe) gate for one event.

    Flow:
    1. Classify (external, may fail -> ClassificationError, retriable)
    2. Score by priority and age
    3. In one atomic store step: mark the event id processed, append it to
       the pending batch and add its score to the scope total
    4. Hand the new total to the debounce gate

    A redelivered event is not counted again in step 3, but still re-checks
    the gate so a crossing missed by an earlier attempt fires. Store failures
    surface as StoreUnavailableError so the delivery is requeued;
    accumulation is never skipped silently.
    """

    def __init__(
        self,
        classifier: PriorityClassifier,
        accumulator: ScoreAccumulator,
        gate: DebounceGate,
        scope_mode: ScopeMode = ScopeMode.GLOBAL,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.classifier = classifier
        self.accumulator = accumulator
        self.gate = gate
        self.scope_mode = ScopeMode(scope_mode)
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def _classify(self, event: InboundEvent) -> PriorityLabel:
        try:
            label = self.classifier.classify(event)
        except MailpulseError:
            raise
        except Exception as e:
            raise ClassificationError(f"Classifier failed for event {event.event_id}", cause=e) from e

        try:
            return PriorityLabel(label)
        except ValueError as e:
            raise ClassificationError(f"Classifier returned unknown label {label!r}", cause=e) from e

    def execute(self, event: InboundEvent) -> ProcessOutcome:
        priority = self._classify(event)
        scope = resolve_scope(self.scope_mode, event, priority)

        points = score(priority, event.sent_at, self.clock())

        total = self.accumulator.add_once(scope, points, replace(event, priority=priority.value))
        if total is None:
            logger.info(f"Event {event.event_id} already counted for scope {scope}; re-checking gate only")
            result = self.gate.evaluate(scope, self.accumulator.get(scope))
            return ProcessOutcome(event.event_id, scope, priority, 0, result.total, result.state, duplicate=True)

        logger.debug(f"Event {event.event_id} ({priority.value}) scored {points}; scope {scope} total {total}")
        result = self.gate.evaluate(scope, total)
        return ProcessOutcome(event.event_id, scope, priority, points, total, result.state)
