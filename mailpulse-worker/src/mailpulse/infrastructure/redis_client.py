"""Redis client wrapper for the counter, lock and batch store."""

from contextlib import asynccontextmanager
from typing import Any

from loguru import logger
from redis import Redis, RedisError
from redis.backoff import NoBackoff
from redis.retry import Retry

from mailpulse.infrastructure.settings import Settings, get_settings


class RedisClientWrapper:
    """Owns one Redis connection pool with an explicit connect/disconnect lifecycle."""

    def __init__(self, settings: Settings | None = None):
        """Initialize Redis client wrapper."""
        self.settings = settings or get_settings()
        self._client: Redis | None = None

    def connect(self) -> Redis:
        """Create the client (connections are opened lazily by the pool)."""
        if self._client is None:
            logger.info(f"Connecting to Redis at {self._redacted_url}")
            self._client = Redis.from_url(
                self.settings.redis_url,
                decode_responses=True,
                socket_timeout=self.settings.redis_socket_timeout,
                socket_connect_timeout=self.settings.redis_connect_timeout,
                # no resends: INCRBY and the counting script are not idempotent
                retry_on_timeout=False,
                retry=Retry(NoBackoff(), 0),
            )
            logger.info("Redis client ready")
        return self._client

    def disconnect(self) -> None:
        """Close the connection pool."""
        if self._client is not None:
            self._client.close()
            self._client = None
            logger.info("Redis connection closed")

    @property
    def client(self) -> Redis:
        """Get or create Redis client."""
        if self._client is None:
            return self.connect()
        return self._client

    @property
    def _redacted_url(self) -> str:
        url = self.settings.redis_url
        if "@" in url:
            scheme, _, rest = url.partition("://")
            return f"{scheme}://***@{rest.split('@', 1)[1]}"
        return url

    def health_check(self) -> dict[str, Any]:
        """Check Redis connection health."""
        try:
            self.client.ping()
            info = self.client.info(section="server")
            return {
                "status": "healthy",
                "url": self._redacted_url,
                "server_version": info.get("redis_version"),
            }
        except RedisError as e:
            logger.error(f"Redis health check failed: {e}")
            return {
                "status": "unhealthy",
                "url": self._redacted_url,
                "error": str(e),
            }

    def __enter__(self) -> "RedisClientWrapper":
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()
        return False


@asynccontextmanager
async def redis_lifespan(settings: Settings | None = None):
    """Async context manager for Redis connection lifecycle."""
    wrapper = RedisClientWrapper(settings)
    wrapper.connect()
    try:
        yield wrapper
    finally:
        wrapper.disconnect()
