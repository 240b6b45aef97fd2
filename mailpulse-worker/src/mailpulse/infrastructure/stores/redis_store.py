"""Redis-backed KeyValueStore.

Compound operations run as MULTI/EXEC pipelines so each is one atomic
round-trip. The conditional one needs a script, since MULTI cannot branch on
the result of ``SET NX``. Requires Redis >= 6.2 for ``SET ... GET``.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

from loguru import logger
from redis import Redis, RedisError

from mailpulse.domain.errors import StoreUnavailableError


@contextmanager
def _store_call(operation: str, key: str) -> Iterator[None]:
    try:
        yield
    except RedisError as e:
        logger.error(f"Redis {operation} on {key} failed: {e}")
        raise StoreUnavailableError(f"Redis {operation} failed for {key}", cause=e) from e


def _as_int(value) -> int:
    return int(value) if value is not None else 0


# KEYS: marker, batch list, counter. ARGV: marker ttl, batch item, delta.
_APPEND_AND_INCR_ONCE = """
if not redis.call("SET", KEYS[1], "1", "NX", "EX", ARGV[1]) then
    return false
end
redis.call("RPUSH", KEYS[2], ARGV[2])
return redis.call("INCRBY", KEYS[3], ARGV[3])
"""


class RedisKeyValueStore:
    def __init__(self, client: Redis) -> None:
        self.client = client
        self._append_and_incr_once = client.register_script(_APPEND_AND_INCR_ONCE)

    def incr_by(self, key: str, delta: int) -> int:
        with _store_call("INCRBY", key):
            return int(self.client.incrby(key, delta))

    def get_int(self, key: str) -> int:
        with _store_call("GET", key):
            return _as_int(self.client.get(key))

    def set_int(self, key: str, value: int) -> int:
        with _store_call("SET", key):
            return _as_int(self.client.set(key, value, get=True))

    def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        with _store_call("SET NX", key):
            return bool(self.client.set(key, value, nx=True, ex=ttl_seconds))

    def exists(self, key: str) -> bool:
        with _store_call("EXISTS", key):
            return self.client.exists(key) > 0

    def ttl(self, key: str) -> Optional[int]:
        with _store_call("TTL", key):
            remaining = self.client.ttl(key)
        # -2: no such key, -1: no expiry
        return remaining if remaining is not None and remaining >= 0 else None

    def delete(self, key: str) -> None:
        with _store_call("DEL", key):
            self.client.delete(key)

    def append_and_incr(self, list_key: str, item: str, counter_key: str, delta: int) -> int:
        with _store_call("RPUSH+INCRBY", counter_key):
            pipe = self.client.pipeline(transaction=True)
            pipe.rpush(list_key, item)
            pipe.incrby(counter_key, delta)
            _, total = pipe.execute()
        return int(total)

    def append_and_incr_once(
        self, marker_key: str, ttl_seconds: int, list_key: str, item: str, counter_key: str, delta: int
    ) -> Optional[int]:
        with _store_call("SET NX+RPUSH+INCRBY", counter_key):
            total = self._append_and_incr_once(
                keys=[marker_key, list_key, counter_key],
                args=[ttl_seconds, item, delta],
            )
        return int(total) if total is not None else None

    def take_and_reset(self, counter_key: str, list_key: str) -> tuple[int, list[str]]:
        with _store_call("SET+LRANGE+DEL", counter_key):
            pipe = self.client.pipeline(transaction=True)
            pipe.set(counter_key, 0, get=True)
            pipe.lrange(list_key, 0, -1)
            pipe.delete(list_key)
            previous, items, _ = pipe.execute()
        return _as_int(previous), list(items or [])

    def list_length(self, key: str) -> int:
        with _store_call("LLEN", key):
            return int(self.client.llen(key))

    def push(self, key: str, item: str) -> None:
        with _store_call("RPUSH", key):
            self.client.rpush(key, item)

    def pop(self, key: str) -> Optional[str]:
        with _store_call("LPOP", key):
            return self.client.lpop(key)

    def ping(self) -> bool:
        try:
            return bool(self.client.ping())
        except RedisError as e:
            logger.warning(f"Redis ping failed: {e}")
            return False
