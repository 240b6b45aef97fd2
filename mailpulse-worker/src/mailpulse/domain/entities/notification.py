from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from mailpulse.domain.entities.inbound_event import InboundEvent

@dataclass(frozen=True)
class Notification:
    """A batched alert for one scope, handed to a dispatch sink."""

    scope: str
    final_score: int
    events: tuple[InboundEvent, ...]
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> dict[str, Any]:
        return {
            "scope": self.scope,
            "final_score": self.final_score,
            "events": [e.to_dict() for e in self.events],
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Notification":
        return cls(
            scope=data["scope"],
            final_score=int(data["final_score"]),
            events=tuple(InboundEvent.from_dict(e) for e in data.get("events", [])),
            created_at=data.get("created_at") or datetime.now(timezone.utc).isoformat(),
        )
