"""Domain models for Mailpulse."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from mailpulse.domain.entities.inbound_event import InboundEvent


class PriorityLabel(str, Enum):
    """Priority assigned to an inbound email by a classifier."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ScopeMode(str, Enum):
    """How scores are partitioned into independent counters."""

    GLOBAL = "global"
    PER_IDENTITY = "per_identity"
    PER_PRIORITY = "per_priority"


class InboundEventPayload(BaseModel):
    """Wire format of a classification event.

    Accepts the flat shape::

        {"event_id": "...", "scope_id": "...", "sender": "...", "recipients": [...],
         "subject": "...", "sent_at": "...", "has_attachments": false}

    and the nested email shape produced by the mail ingester::

        {"uid": 42, "user_id": "...", "account": "...",
         "headers": {"subject": "...", "from": "...", "to": [...], "cc": [...],
                     "date": "...", "message_id": "..."},
         "has_attachments": false}
    """

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    event_id: str = Field(..., min_length=1)
    scope_id: str = Field(..., min_length=1)
    sender: str = ""
    recipients: list[str] = Field(default_factory=list)
    subject: str = ""
    sent_at: str | None = None
    has_attachments: bool = False

    @model_validator(mode="before")
    @classmethod
    def _flatten_email_shape(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "headers" not in data:
            return data

        headers = data.get("headers") or {}
        if not isinstance(headers, dict):
            raise ValueError("headers must be an object")

        event_id = data.get("event_id") or headers.get("message_id")
        if not event_id and data.get("uid") is not None:
            event_id = f"{data.get('account', '')}:{data['uid']}"

        return {
            "event_id": event_id,
            "scope_id": data.get("scope_id") or data.get("user_id") or data.get("account"),
            "sender": headers.get("from") or "",
            "recipients": list(headers.get("to") or []) + list(headers.get("cc") or []),
            "subject": headers.get("subject") or "",
            "sent_at": headers.get("date"),
            "has_attachments": data.get("has_attachments", False),
        }

    @field_validator("event_id", "scope_id", mode="before")
    @classmethod
    def _coerce_identifier(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("sent_at", mode="before")
    @classmethod
    def _coerce_sent_at(cls, value: Any) -> Any:
        # timestamps are free text; anything non-string is kept as its text form
        if value is None or isinstance(value, str):
            return value
        return str(value)

    def to_event(self) -> InboundEvent:
        return InboundEvent(
            event_id=self.event_id,
            scope_id=self.scope_id,
            sender=self.sender,
            recipients=tuple(self.recipients),
            subject=self.subject,
            sent_at=self.sent_at,
            has_attachments=self.has_attachments,
        )


class ScopeStatus(BaseModel):
    """Point-in-time view of one scope's accumulation state."""

    scope: str
    total: int
    threshold: int
    locked: bool
    lock_ttl_seconds: int | None = None
    pending_events: int = 0
