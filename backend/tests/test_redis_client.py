"""
Tests for the Redis client used by the guest cart store.

The wrapped redis.asyncio client is replaced by the in-memory double from
conftest; connection failures are simulated with patched commands.
"""

from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from shopcore.cache.redis_client import CacheKeyManager, RedisClient, _mask_url


# ============================================================================
# Health Check
# ============================================================================


class TestHealthCheck:
    """Tests for RedisClient.health_check."""

    @pytest.mark.asyncio
    async def test_healthy_when_ping_answers(self, redis_client):
        assert await redis_client.health_check() is True

    @pytest.mark.asyncio
    async def test_unhealthy_when_ping_fails(self, redis_client, fake_redis, monkeypatch):
        monkeypatch.setattr(
            fake_redis, "ping", AsyncMock(side_effect=RedisConnectionError("down"))
        )
        assert await redis_client.health_check() is False

    @pytest.mark.asyncio
    async def test_unhealthy_when_not_connected(self, settings):
        client = RedisClient(url="redis://localhost:6379/0")
        assert await client.health_check() is False


# ============================================================================
# Commands
# ============================================================================


class TestCommands:
    """Tests for the JSON document commands."""

    @pytest.mark.asyncio
    async def test_json_document_with_expiry(self, redis_client, fake_redis):
        assert await redis_client.set_json("cart:guest:abc", {"lines": []}, ex=60)

        assert fake_redis.ttls["cart:guest:abc"] == 60
        assert await redis_client.get_json("cart:guest:abc") == {"lines": []}

    @pytest.mark.asyncio
    async def test_missing_key_reads_as_none(self, redis_client):
        assert await redis_client.get_json("cart:guest:missing") is None

    @pytest.mark.asyncio
    async def test_delete_counts_existing_keys(self, redis_client):
        await redis_client.set_json("cart:guest:abc", {"lines": []})

        assert await redis_client.delete("cart:guest:abc", "cart:guest:other") == 1

    @pytest.mark.asyncio
    async def test_command_failure_is_reraised(self, redis_client, fake_redis, monkeypatch):
        monkeypatch.setattr(
            fake_redis, "get", AsyncMock(side_effect=RedisConnectionError("down"))
        )

        with pytest.raises(RedisConnectionError):
            await redis_client.get_json("cart:guest:abc")

    @pytest.mark.asyncio
    async def test_commands_require_connection(self, settings):
        client = RedisClient(url="redis://localhost:6379/0")

        with pytest.raises(RedisConnectionError):
            await client.get_json("cart:guest:abc")

    @pytest.mark.asyncio
    async def test_disconnect_closes_wrapped_client(self, redis_client, fake_redis):
        await redis_client.disconnect()

        assert fake_redis.closed
        assert not redis_client.connected


# ============================================================================
# Keys and Logging Helpers
# ============================================================================


class TestHelpers:
    """Tests for key layout and URL masking."""

    def test_guest_cart_key(self):
        assert CacheKeyManager().guest_cart_key("s1") == "cart:guest:s1"

    def test_namespaced_guest_cart_key(self):
        assert CacheKeyManager("shop").guest_cart_key("s1") == "shop:cart:guest:s1"

    @pytest.mark.parametrize(
        "url,expected",
        [
            ("redis://:secret@cache:6379/0", "redis://***@cache:6379/0"),
            ("redis://localhost:6379/0", "redis://localhost:6379/0"),
        ],
    )
    def test_mask_url(self, url, expected):
        assert _mask_url(url) == expected
