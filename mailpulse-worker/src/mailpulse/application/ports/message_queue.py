from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

@dataclass(frozen=True)
class Delivery:
    # attempt is 1 on first delivery and grows with each requeue
    payload: bytes
    key: Optional[bytes] = None
    attempt: int = 1
    handle: Any = field(default=None, compare=False, repr=False)

class MessageQueue(Protocol):
    def receive(self, max_messages: int, timeout: float) -> list[Delivery]: ...
    def ack(self, delivery: Delivery) -> None: ...
    def requeue(self, delivery: Delivery, reason: str, count_attempt: bool = True) -> None:
        """Redeliver later; ``count_attempt=False`` keeps the attempt number unchanged."""
        ...
    def dead_letter(self, delivery: Delivery, reason: str) -> None: ...
    def commit(self) -> None: ...
    def close(self) -> None: ...
