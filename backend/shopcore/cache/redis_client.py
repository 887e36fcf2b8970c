"""
Redis access for guest cart sessions.

Guest carts are stored as one JSON document per cart session. This module
owns the pooled redis.asyncio connection, the few commands the cart session
store issues, the key layout, and the process-wide client used by the app
lifespan and the /health endpoint.
"""

import json
from typing import Any, Awaitable, Optional, TypeVar

from redis.asyncio import ConnectionPool, Redis
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff
from redis.exceptions import ConnectionError, RedisError, TimeoutError

from shopcore.core.config import get_settings
from shopcore.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def _mask_url(url: str) -> str:
    """Hide credentials in a Redis URL before it is logged."""
    scheme, sep, rest = url.partition("://")
    if sep and "@" in rest:
        return f"{scheme}://***@{rest.split('@', 1)[1]}"
    return url


class RedisClient:
    """
    Pooled async Redis client for the guest cart store.

    Either connects to ``url`` (``settings.redis_url`` by default) through
    ``connect()``, or wraps an already constructed redis.asyncio client,
    which is then treated as connected. Command failures are logged and
    re-raised as redis errors; callers decide how to surface them.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        max_connections: Optional[int] = None,
        socket_timeout: float = 5.0,
        client: Optional[Redis] = None,
    ):
        settings = get_settings()
        self._url = url or settings.redis_url
        self._max_connections = max_connections or settings.redis_max_connections
        self._socket_timeout = socket_timeout

        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[Redis] = client

    @property
    def connected(self) -> bool:
        return self._client is not None

    async def connect(self) -> None:
        """
        Open the connection pool and verify it with PING.

        Raises:
            ConnectionError: If Redis cannot be reached
        """
        if self.connected:
            return

        self._pool = ConnectionPool.from_url(
            self._url,
            max_connections=self._max_connections,
            socket_timeout=self._socket_timeout,
            socket_connect_timeout=self._socket_timeout,
            health_check_interval=30,
            retry=Retry(ExponentialBackoff(base=0.1, cap=2.0), retries=3),
            decode_responses=True,
        )
        self._client = Redis(connection_pool=self._pool)

        try:
            await self._client.ping()
        except (ConnectionError, TimeoutError) as e:
            logger.error(
                "Failed to connect to Redis",
                url=_mask_url(self._url),
                error=str(e),
            )
            await self.disconnect()
            raise ConnectionError(f"Redis connection failed: {e}") from e

        logger.info(
            "Redis connection established",
            url=_mask_url(self._url),
            max_connections=self._max_connections,
        )

    async def disconnect(self) -> None:
        """Close the client and its pool; safe to call when not connected."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        if self._pool is not None:
            await self._pool.aclose()
            self._pool = None

    async def health_check(self) -> bool:
        """
        Check that Redis answers PING.

        Returns:
            True if Redis responded, False if not connected or the ping failed
        """
        if self._client is None:
            logger.warning("Redis health check failed: not connected")
            return False

        try:
            await self._client.ping()
        except RedisError as e:
            logger.error(
                "Redis health check failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            return False
        return True

    async def _execute(self, command: str, key: Any, call: Awaitable[T]) -> T:
        try:
            result = await call
        except RedisError as e:
            logger.error(f"Redis {command} failed", key=key, error=str(e))
            raise
        logger.debug(f"Redis {command}", key=key)
        return result

    def _require_client(self) -> Redis:
        if self._client is None:
            raise ConnectionError("Redis client is not connected")
        return self._client

    async def get_json(self, key: str) -> Optional[dict[str, Any]]:
        """
        Read a JSON document.

        Returns:
            The decoded document, or None if the key does not exist

        Raises:
            RedisError: If the command fails
            json.JSONDecodeError: If the stored value is not JSON
        """
        client = self._require_client()
        value = await self._execute("GET", key, client.get(key))
        if value is None:
            return None
        return json.loads(value)

    async def set_json(
        self,
        key: str,
        value: dict[str, Any],
        ex: Optional[int] = None,
    ) -> bool:
        """
        Write a JSON document, optionally expiring after ``ex`` seconds.

        Raises:
            RedisError: If the command fails
            TypeError: If the value is not JSON serializable
        """
        client = self._require_client()
        payload = json.dumps(value)
        return bool(await self._execute("SET", key, client.set(key, payload, ex=ex)))

    async def delete(self, *keys: str) -> int:
        """Delete keys; returns how many existed."""
        client = self._require_client()
        return await self._execute("DELETE", keys, client.delete(*keys))


class CacheKeyManager:
    """
    Builds colon separated Redis keys, optionally under a namespace.

    Guest carts live at ``cart:guest:<session_id>``.
    """

    def __init__(self, namespace: Optional[str] = None):
        self.namespace = namespace

    def guest_cart_key(self, session_id: str) -> str:
        parts = ["cart", "guest", session_id]
        if self.namespace:
            parts.insert(0, self.namespace)
        return ":".join(parts)


_redis_client: Optional[RedisClient] = None


async def get_redis_client() -> RedisClient:
    """
    Get the process-wide client, connecting it on first use.

    Raises:
        ConnectionError: If Redis cannot be reached
    """
    global _redis_client

    if _redis_client is None:
        client = RedisClient()
        await client.connect()
        _redis_client = client

    return _redis_client


async def close_redis_client() -> None:
    """Disconnect and forget the process-wide client."""
    global _redis_client

    if _redis_client is not None:
        await _redis_client.disconnect()
        _redis_client = None
        logger.info("Global Redis client closed")
