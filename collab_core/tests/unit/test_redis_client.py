# collab_core/tests/unit/test_redis_client.py

import asyncio
import logging
from unittest.mock import AsyncMock, patch

import pytest
import redis

from collab_core.domain.exceptions import StoreUnavailable
from collab_core.infrastructure.redis_client import RedisClient


@pytest.fixture
def unconnected_client(test_logger):
    return RedisClient(host="localhost", port=6379, logger=test_logger)


@pytest.mark.asyncio
async def test_redis_connect_and_publish(unconnected_client, caplog):
    caplog.set_level(logging.DEBUG)
    with patch("redis.asyncio.Redis", return_value=AsyncMock()) as mock_redis:
        mock_redis.return_value.ping.return_value = True
        await unconnected_client.connect()
        assert unconnected_client.client is not None
        assert (
            f"Successfully connected to Redis at {unconnected_client.host}:{unconnected_client.port}"
            in caplog.text
        )

        await unconnected_client.publish("store:posts", "payload")
        unconnected_client.client.publish.assert_called_once_with("store:posts", "payload")
        assert "Published message to channel store:posts" in caplog.text


@pytest.mark.asyncio
async def test_redis_connect_fail(unconnected_client, caplog):
    caplog.set_level(logging.ERROR)
    with patch("redis.asyncio.Redis", return_value=AsyncMock()) as mock_redis:
        mock_redis.return_value.ping.side_effect = redis.ConnectionError("Connection failed")
        with pytest.raises(redis.ConnectionError):
            await unconnected_client.connect()
        assert "Failed to connect to Redis: Connection failed" in caplog.text


@pytest.mark.asyncio
async def test_redis_disconnect(unconnected_client, caplog):
    caplog.set_level(logging.INFO)
    unconnected_client.client = AsyncMock()
    await unconnected_client.disconnect()
    unconnected_client.client.aclose.assert_called_once()
    assert "Disconnected from Redis" in caplog.text


@pytest.mark.asyncio
async def test_publish_requires_connection(unconnected_client):
    with pytest.raises(RuntimeError):
        await unconnected_client.publish("store:posts", "payload")


@pytest.mark.asyncio
async def test_lock_without_connection_is_store_unavailable(unconnected_client):
    with pytest.raises(StoreUnavailable):
        async with unconnected_client.lock("request:r1"):
            pass


@pytest.mark.asyncio
async def test_lock_holds_key_and_releases(redis_client, mock_redis):
    async with redis_client.lock("request:r1"):
        assert await mock_redis.exists("lock:request:r1") == 1
    assert await mock_redis.exists("lock:request:r1") == 0


@pytest.mark.asyncio
async def test_lock_releases_on_error(redis_client, mock_redis):
    with pytest.raises(ValueError):
        async with redis_client.lock("request:r1"):
            raise ValueError("inside")
    assert await mock_redis.exists("lock:request:r1") == 0


@pytest.mark.asyncio
async def test_lock_serializes_holders(redis_client):
    order = []

    async def worker(name):
        async with redis_client.lock("group-chat:p1"):
            order.append(f"{name}-in")
            await asyncio.sleep(0.05)
            order.append(f"{name}-out")

    await asyncio.gather(worker("a"), worker("b"))

    assert order in (
        ["a-in", "a-out", "b-in", "b-out"],
        ["b-in", "b-out", "a-in", "a-out"],
    )


@pytest.mark.asyncio
async def test_lock_timeout_is_store_unavailable(mock_redis, test_logger):
    client = RedisClient(
        host="localhost", port=6379, logger=test_logger, lock_timeout=5, lock_blocking_timeout=0.2
    )
    client.client = mock_redis
    await mock_redis.set("lock:request:r1", "someone-else")

    with pytest.raises(StoreUnavailable):
        async with client.lock("request:r1"):
            pass
