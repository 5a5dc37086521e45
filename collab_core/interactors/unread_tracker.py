# collab_core/interactors/unread_tracker.py
import logging
from functools import partial
from typing import Dict, List, Optional

from collab_core.domain.events import UnreadCountUpdated
from collab_core.domain.interfaces import AbstractAuthProvider, Unsubscribe
from collab_core.infrastructure import schemas
from collab_core.infrastructure.event_dispatcher import EventDispatcher
from collab_core.infrastructure.subscriptions import SubscriptionRegistry
from collab_core.interactors.group_chat_interactor import GroupChatInteractor

CHAT_LIST_KEY = "chat-list"


def count_unread(
    chat: schemas.GroupChat, user_id: str, messages: List[schemas.Message]
) -> int:
    """Messages newer than the user's read cursor, whoever sent them.

    A member who has never read the chat has every message unread.
    """
    member = chat.members.get(user_id)
    last_read_at = member.last_read_at if member else None
    return sum(
        1
        for message in messages
        if last_read_at is None or message.timestamp > last_read_at
    )


class UnreadTracker:
    """Per-client unread counters for the signed-in user's group chats.

    Holds one live query on the user's chat list and one live message query
    per chat, keyed by chat id in a ``SubscriptionRegistry``; handles are
    added and cancelled as the chat list changes and all are dropped when
    the signed-in user changes. Counts are bounded by the live message
    window.
    """

    def __init__(
        self,
        group_chats: GroupChatInteractor,
        dispatcher: EventDispatcher,
        logger: logging.Logger,
    ):
        self.group_chats = group_chats
        self.dispatcher = dispatcher
        self.logger = logger
        self.registry = SubscriptionRegistry()
        self.user_id: Optional[str] = None
        self.open_chat_id: Optional[str] = None
        self.chats: Dict[str, schemas.GroupChat] = {}
        self.messages: Dict[str, List[schemas.Message]] = {}
        self.counts: Dict[str, int] = {}
        self._subscribing: set[str] = set()
        self._auth_unsubscribe: Optional[Unsubscribe] = None

    @property
    def total_unread(self) -> int:
        return sum(self.counts.values())

    def unread_count(self, chat_id: str) -> int:
        return self.counts.get(chat_id, 0)

    async def bind(self, auth_provider: AbstractAuthProvider) -> None:
        self.unbind()
        self._auth_unsubscribe = auth_provider.add_listener(self.on_auth_state_changed)
        await self.on_auth_state_changed(auth_provider.current_user_id())

    def unbind(self) -> None:
        if self._auth_unsubscribe is not None:
            self._auth_unsubscribe()
            self._auth_unsubscribe = None

    async def on_auth_state_changed(self, user_id: Optional[str]) -> None:
        if user_id == self.user_id:
            return
        self.stop()
        if user_id:
            await self.start(user_id)

    async def start(self, user_id: str) -> None:
        self.stop()
        self.user_id = user_id
        handle = await self.group_chats.subscribe_user_chats(user_id, self._on_chats)
        self.registry.replace(CHAT_LIST_KEY, handle)
        self.logger.info(f"Tracking unread counts for {user_id}")

    def stop(self) -> None:
        self.registry.cancel_all()
        self.user_id = None
        self.open_chat_id = None
        self.chats.clear()
        self.messages.clear()
        self.counts.clear()
        self._subscribing.clear()

    async def open_chat(self, chat_id: str) -> None:
        if chat_id not in self.chats:
            self.logger.warning(f"{self.user_id} is not a member of {chat_id}, not opening it")
            return
        self.open_chat_id = chat_id
        if chat_id not in self.messages:
            self.messages[chat_id] = await self.group_chats.get_messages(chat_id)
        await self._mark_newest_read(chat_id)
        await self._recompute(chat_id)

    def close_chat(self) -> None:
        self.open_chat_id = None

    async def _on_chats(self, chats: List[schemas.GroupChat]) -> None:
        current = {chat.id: chat for chat in chats}
        self.chats = current

        for chat_id in self.registry.keys() - {CHAT_LIST_KEY}:
            if chat_id not in current:
                self.registry.cancel(chat_id)
                self.messages.pop(chat_id, None)
                self.counts.pop(chat_id, None)
                if self.open_chat_id == chat_id:
                    self.open_chat_id = None

        for chat_id in current:
            if chat_id in self.registry or chat_id in self._subscribing:
                continue
            self._subscribing.add(chat_id)
            try:
                handle = await self.group_chats.subscribe_messages(
                    chat_id, partial(self._on_messages, chat_id)
                )
            finally:
                self._subscribing.discard(chat_id)
            if self.user_id is None:
                handle()
                return
            self.registry.replace(chat_id, handle)

        for chat_id in current:
            await self._recompute(chat_id)

    async def _on_messages(self, chat_id: str, messages: List[schemas.Message]) -> None:
        self.messages[chat_id] = messages
        if chat_id == self.open_chat_id:
            await self._mark_newest_read(chat_id)
        await self._recompute(chat_id)

    async def _mark_newest_read(self, chat_id: str) -> None:
        messages = self.messages.get(chat_id)
        if not messages or self.user_id is None:
            return
        newest = messages[-1]
        chat = self.chats.get(chat_id)
        member = chat.members.get(self.user_id) if chat else None
        if member is not None and member.last_read_message_id == newest.id:
            return
        result = await self.group_chats.mark_read(chat_id, self.user_id, newest.id)
        if not result:
            self.logger.warning(f"Could not mark {chat_id} read for {self.user_id}")

    async def _recompute(self, chat_id: str) -> None:
        chat = self.chats.get(chat_id)
        if chat is None or self.user_id is None:
            return
        if chat_id == self.open_chat_id:
            count = 0
        else:
            count = count_unread(chat, self.user_id, self.messages.get(chat_id, []))
        if self.counts.get(chat_id) == count:
            return
        self.counts[chat_id] = count
        await self.dispatcher.dispatch(
            UnreadCountUpdated(chat_id=chat_id, user_id=self.user_id, unread_count=count)
        )
