from __future__ import annotations
from typing import Optional, Protocol

class KeyValueStore(Protocol):
    """Shared store holding counters, locks and batches.

    Every method is one atomic round-trip; callers never combine reads and
    writes themselves.
    """

    def incr_by(self, key: str, delta: int) -> int: ...
    def get_int(self, key: str) -> int: ...
    def set_int(self, key: str, value: int) -> int:
        """Unconditionally set ``key``; returns the previous value (0 if absent)."""
        ...
    def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool: ...
    def exists(self, key: str) -> bool: ...
    def ttl(self, key: str) -> Optional[int]: ...
    def delete(self, key: str) -> None: ...
    def append_and_incr(self, list_key: str, item: str, counter_key: str, delta: int) -> int: ...
    def append_and_incr_once(
        self, marker_key: str, ttl_seconds: int, list_key: str, item: str, counter_key: str, delta: int
    ) -> Optional[int]:
        """Like ``append_and_incr`` but only if ``marker_key`` is absent, which it then
        creates with ``ttl_seconds``. Returns None, changing nothing, when the marker exists."""
        ...
    def take_and_reset(self, counter_key: str, list_key: str) -> tuple[int, list[str]]: ...
    def list_length(self, key: str) -> int: ...
    def push(self, key: str, item: str) -> None: ...
    def pop(self, key: str) -> Optional[str]: ...
    def ping(self) -> bool: ...
