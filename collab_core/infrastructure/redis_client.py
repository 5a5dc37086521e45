# collab_core/infrastructure/redis_client.py
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import redis.asyncio as redis
from redis.exceptions import LockError, RedisError

from collab_core.domain.exceptions import StoreUnavailable


class RedisClient:
    def __init__(
        self,
        host: str,
        port: int,
        logger: logging.Logger,
        lock_timeout: float = 10.0,
        lock_blocking_timeout: float = 5.0,
    ):
        self.host = host
        self.port = port
        self.client: redis.Redis | None = None
        self.logger = logger
        self.lock_timeout = lock_timeout
        self.lock_blocking_timeout = lock_blocking_timeout

    async def connect(self):
        self.client = redis.Redis(
            host=self.host,
            port=self.port,
            db=0,
            decode_responses=True,
        )
        try:
            await self.client.ping()
            self.logger.info(
                f"Successfully connected to Redis at {self.host}:{self.port}"
            )
        except redis.ConnectionError as e:
            self.logger.error(f"Failed to connect to Redis: {e!s}")
            self.logger.error(f"Redis host: {self.host}, Redis port: {self.port}")
            raise e

    async def disconnect(self):
        if self.client:
            await self.client.aclose()
            self.logger.info("Disconnected from Redis")

    async def publish(self, channel: str, message: str) -> None:
        if self.client is None:
            raise RuntimeError("Redis client not connected")
        await self.client.publish(channel, message)
        self.logger.debug(f"Published message to channel {channel}")

    def pubsub(self):
        if self.client is None:
            raise RuntimeError("Redis client not connected")
        return self.client.pubsub()

    @asynccontextmanager
    async def lock(self, name: str) -> AsyncIterator[None]:
        """Hold the distributed lock ``lock:<name>`` for the duration of the block.

        Every client guarding the same records must use the same name.
        """
        if self.client is None:
            raise StoreUnavailable("Redis client not connected")
        lock = self.client.lock(
            f"lock:{name}",
            timeout=self.lock_timeout,
            blocking_timeout=self.lock_blocking_timeout,
        )
        try:
            acquired = await lock.acquire()
        except RedisError as e:
            raise StoreUnavailable(f"Could not acquire lock {name}: {e!s}") from e
        if not acquired:
            raise StoreUnavailable(f"Timed out waiting for lock {name}")
        self.logger.debug(f"Acquired lock {name}")
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                # expired while held; another client may already own it
                self.logger.warning(f"Lock {name} expired before release")
