"""Scope resolution and deterministic key naming."""

from __future__ import annotations

from dataclasses import dataclass

from mailpulse.domain.entities.inbound_event import InboundEvent
from mailpulse.domain.models import PriorityLabel, ScopeMode

GLOBAL_SCOPE = "global"


def resolve_scope(mode: ScopeMode, event: InboundEvent, priority: PriorityLabel) -> str:
    """Name of the counter an event contributes to."""
    mode = ScopeMode(mode)
    if mode is ScopeMode.GLOBAL:
        return GLOBAL_SCOPE
    if mode is ScopeMode.PER_IDENTITY:
        return event.scope_id
    return PriorityLabel(priority).value


@dataclass(frozen=True)
class ScopeKeys:
    """Store key names, all under one prefix so deployments can share a Redis."""

    prefix: str = "mailpulse"

    def score(self, scope: str) -> str:
        return f"{self.prefix}:score:{scope}"

    def lock(self, scope: str) -> str:
        return f"{self.prefix}:lock:{scope}"

    def batch(self, scope: str) -> str:
        return f"{self.prefix}:batch:{scope}"

    def processed(self, event_id: str) -> str:
        return f"{self.prefix}:processed:{event_id}"

    @property
    def outbox(self) -> str:
        return f"{self.prefix}:outbox:dispatch"

    @property
    def dead_outbox(self) -> str:
        return f"{self.prefix}:outbox:dead"
