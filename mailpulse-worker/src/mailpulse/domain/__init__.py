"""Domain models and entities."""

from mailpulse.domain.entities.inbound_event import InboundEvent
from mailpulse.domain.entities.notification import Notification
from mailpulse.domain.errors import (
    ClassificationError,
    MailpulseError,
    MalformedEventError,
    StoreUnavailableError,
)
from mailpulse.domain.models import (
    InboundEventPayload,
    PriorityLabel,
    ScopeMode,
    ScopeStatus,
)

__all__ = [
    "InboundEvent",
    "Notification",
    "PriorityLabel",
    "ScopeMode",
    "ScopeStatus",
    "InboundEventPayload",
    "MailpulseError",
    "MalformedEventError",
    "ClassificationError",
    "StoreUnavailableError",
]
