"""Single-process KeyValueStore for development and tests.

Every operation runs under one lock, which gives the same per-operation
atomicity Redis provides. State is not shared between processes, so this
store is only correct for a single worker instance.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional


@dataclass
class _Entry:
    value: Any
    expires_at: Optional[float] = None


class InMemoryKeyValueStore:
    def __init__(self, clock: Optional[Callable[[], float]] = None) -> None:
        self._clock = clock or time.monotonic
        self._data: dict[str, _Entry] = {}
        self._lock = threading.Lock()

    def _live(self, key: str) -> Optional[_Entry]:
        entry = self._data.get(key)
        if entry is not None and entry.expires_at is not None and entry.expires_at <= self._clock():
            del self._data[key]
            return None
        return entry

    def _int(self, key: str) -> int:
        entry = self._live(key)
        return int(entry.value) if entry is not None else 0

    def _list(self, key: str) -> list[str]:
        entry = self._live(key)
        if entry is None:
            entry = self._data[key] = _Entry([])
        return entry.value

    def incr_by(self, key: str, delta: int) -> int:
        with self._lock:
            total = self._int(key) + delta
            self._data[key] = _Entry(total)
            return total

    def get_int(self, key: str) -> int:
        with self._lock:
            return self._int(key)

    def set_int(self, key: str, value: int) -> int:
        with self._lock:
            previous = self._int(key)
            self._data[key] = _Entry(value)
            return previous

    def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        with self._lock:
            if self._live(key) is not None:
                return False
            self._data[key] = _Entry(value, self._clock() + ttl_seconds)
            return True

    def exists(self, key: str) -> bool:
        with self._lock:
            return self._live(key) is not None

    def ttl(self, key: str) -> Optional[int]:
        with self._lock:
            entry = self._live(key)
            if entry is None or entry.expires_at is None:
                return None
            return max(0, int(round(entry.expires_at - self._clock())))

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def append_and_incr(self, list_key: str, item: str, counter_key: str, delta: int) -> int:
        with self._lock:
            self._list(list_key).append(item)
            total = self._int(counter_key) + delta
            self._data[counter_key] = _Entry(total)
            return total

    def append_and_incr_once(
        self, marker_key: str, ttl_seconds: int, list_key: str, item: str, counter_key: str, delta: int
    ) -> Optional[int]:
        with self._lock:
            if self._live(marker_key) is not None:
                return None
            self._data[marker_key] = _Entry("1", self._clock() + ttl_seconds)
            self._list(list_key).append(item)
            total = self._int(counter_key) + delta
            self._data[counter_key] = _Entry(total)
            return total

    def take_and_reset(self, counter_key: str, list_key: str) -> tuple[int, list[str]]:
        with self._lock:
            previous = self._int(counter_key)
            self._data[counter_key] = _Entry(0)
            entry = self._data.pop(list_key, None)
            return previous, list(entry.value) if entry is not None else []

    def list_length(self, key: str) -> int:
        with self._lock:
            entry = self._live(key)
            return len(entry.value) if entry is not None else 0

    def push(self, key: str, item: str) -> None:
        with self._lock:
            self._list(key).append(item)

    def pop(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._live(key)
            if entry is None or not entry.value:
                return None
            return entry.value.pop(0)

    def ping(self) -> bool:
        return True
