from __future__ import annotations
from typing import Protocol
from mailpulse.domain.entities.notification import Notification

class DispatchSink(Protocol):
    def dispatch(self, notification: Notification) -> None: ...
