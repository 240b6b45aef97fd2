"""Stand-in priority classifiers used until a model-backed classifier is wired in."""

from __future__ import annotations

import random
from typing import Optional

from mailpulse.domain.entities.inbound_event import InboundEvent
from mailpulse.domain.models import PriorityLabel

_KEYWORD_WEIGHTS = {
    "urgent": 4,
    "asap": 3,
    "outage": 3,
    "action required": 2,
    "important": 2,
    "overdue": 2,
    "invoice": 1,
    "follow up": 1,
}
_SENDER_HINTS = {
    "ceo": 3,
    "security": 3,
    "alerts": 2,
    "billing": 1,
}
HIGH_CUTOFF = 4
MEDIUM_CUTOFF = 2


class FixedPriorityClassifier:
    """Labels every event the same."""

    def __init__(self, label: PriorityLabel = PriorityLabel.MEDIUM) -> None:
        self.label = PriorityLabel(label)

    def classify(self, event: InboundEvent) -> PriorityLabel:
        return self.label


class RandomPriorityClassifier:
    """Uniformly random labels; pass a seed for repeatable runs."""

    def __init__(self, seed: Optional[int] = None) -> None:
        self._rng = random.Random(seed)
        self._labels = list(PriorityLabel)

    def classify(self, event: InboundEvent) -> PriorityLabel:
        return self._rng.choice(self._labels)


class KeywordPriorityClassifier:
    """Coarse heuristic over subject keywords, sender hints and attachments."""

    def weight(self, event: InboundEvent) -> int:
        subject = (event.subject or "").lower()
        sender = (event.sender or "").lower()

        weight = sum(w for keyword, w in _KEYWORD_WEIGHTS.items() if keyword in subject)
        for hint, w in _SENDER_HINTS.items():
            if hint in sender:
                weight += w
                break
        if event.has_attachments:
            weight += 1
        return weight

    def classify(self, event: InboundEvent) -> PriorityLabel:
        weight = self.weight(event)
        if weight >= HIGH_CUTOFF:
            return PriorityLabel.HIGH
        if weight >= MEDIUM_CUTOFF:
            return PriorityLabel.MEDIUM
        return PriorityLabel.LOW
