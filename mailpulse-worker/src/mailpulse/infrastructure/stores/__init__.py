"""Store implementations."""

from mailpulse.infrastructure.stores.memory_store import InMemoryKeyValueStore
from mailpulse.infrastructure.stores.redis_store import RedisKeyValueStore

__all__ = [
    "InMemoryKeyValueStore",
    "RedisKeyValueStore",
]
