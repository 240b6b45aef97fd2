from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Optional

@dataclass(frozen=True)
class InboundEvent:
    event_id: str
    scope_id: str  # originating account / user
    sender: str
    recipients: tuple[str, ...]
    subject: str
    sent_at: Optional[str]  # free text as received; may not parse
    has_attachments: bool = False
    priority: Optional[str] = field(default=None, compare=False)  # set once classified

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "scope_id": self.scope_id,
            "sender": self.sender,
            "recipients": list(self.recipients),
            "subject": self.subject,
            "sent_at": self.sent_at,
            "has_attachments": self.has_attachments,
            "priority": self.priority,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "InboundEvent":
        return cls(
            event_id=data["event_id"],
            scope_id=data["scope_id"],
            sender=data.get("sender", ""),
            recipients=tuple(data.get("recipients") or ()),
            subject=data.get("subject", ""),
            sent_at=data.get("sent_at"),
            has_attachments=bool(data.get("has_attachments", False)),
            priority=data.get("priority"),
        )
