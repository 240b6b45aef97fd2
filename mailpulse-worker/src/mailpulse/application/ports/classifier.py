from __future__ import annotations
from typing import Protocol
from mailpulse.domain.entities.inbound_event import InboundEvent
from mailpulse.domain.models import PriorityLabel

class PriorityClassifier(Protocol):
    def classify(self, event: InboundEvent) -> PriorityLabel: ...
