# collab_core/infrastructure/change_feed.py
import asyncio
import logging
from typing import Any

import redis.asyncio as redis
from pydantic import ValidationError

from collab_core.domain.events import DocumentChanged
from collab_core.infrastructure.redis_client import RedisClient
from collab_core.infrastructure.subscriptions import SubscriptionHub


class ChangeFeedListener:
    """Relays change notifications published by other processes sharing the
    same store into this process's live queries.

    Notifications carrying this process's own origin are ignored; those were
    already delivered locally when the write committed.
    """

    def __init__(
        self,
        redis_client: RedisClient,
        hub: SubscriptionHub,
        origin: str,
        logger: logging.Logger,
        channel_prefix: str = "store",
        reconnect_delay: float = 5.0,
    ):
        self.redis_client = redis_client
        self.hub = hub
        self.origin = origin
        self.logger = logger
        self.pattern = f"{channel_prefix}:*"
        self.reconnect_delay = reconnect_delay
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._listen())
        self.logger.info(f"Listening for remote changes on {self.pattern}")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        self.logger.info("Stopped listening for remote changes")

    async def handle_message(self, message: dict[str, Any]) -> bool:
        """Apply one pub/sub message; returns True when it was relayed."""
        if message.get("type") not in ("message", "pmessage"):
            return False
        try:
            event = DocumentChanged.model_validate_json(message["data"])
        except ValidationError as e:
            self.logger.warning(f"Ignoring malformed change notification: {e!s}")
            return False
        if event.origin == self.origin:
            return False
        self.logger.debug(
            f"Remote {event.change} of {event.collection}/{event.document_id}"
        )
        await self.hub.on_document_changed(event)
        return True

    async def _listen(self) -> None:
        while True:
            pubsub = self.redis_client.pubsub()
            try:
                await pubsub.psubscribe(self.pattern)
                while True:
                    message = await pubsub.get_message(
                        ignore_subscribe_messages=True, timeout=1.0
                    )
                    if message is not None:
                        await self.handle_message(message)
            except redis.ConnectionError as e:
                self.logger.error(
                    f"Redis connection error: {e!s}. Reconnecting in {self.reconnect_delay} seconds..."
                )
                await asyncio.sleep(self.reconnect_delay)
            finally:
                await pubsub.aclose()
