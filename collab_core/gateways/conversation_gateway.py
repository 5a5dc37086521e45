# collab_core/gateways/conversation_gateway.py
from dataclasses import dataclass
from typing import Any, Optional

from collab_core.domain.entities import (
    Document,
    FieldFilter,
    MessageType,
    OrderBy,
)
from collab_core.domain.exceptions import ConversationClosed, Unauthorized
from collab_core.domain.interfaces import AbstractDocumentStore, SnapshotCallback, Unsubscribe
from collab_core.infrastructure import schemas
from collab_core.infrastructure.subscriptions import notify

SYSTEM_SENDER_ID = "system"


@dataclass(frozen=True)
class ConversationKind:
    collection: str
    member_field: str
    # system messages leave the conversation preview untouched
    system_updates_summary: bool = False


class ConversationGateway:
    """Message log, last-message summary and member lookup shared by every
    kind of conversation. Group chats and request DMs wrap one of these."""

    def __init__(self, store: AbstractDocumentStore, kind: ConversationKind):
        self.store = store
        self.kind = kind

    def messages_path(self, conversation_id: str) -> str:
        return f"{self.kind.collection}/{conversation_id}/messages"

    async def get(self, conversation_id: str) -> Document:
        return await self.store.get(self.kind.collection, conversation_id)

    async def append_message(
        self, conversation_id: str, message: schemas.MessageCreate
    ) -> str:
        conversation = await self.get(conversation_id)
        if not conversation.data.get("is_active", True):
            raise ConversationClosed(conversation_id)
        is_system = message.type == MessageType.SYSTEM
        members = conversation.data.get(self.kind.member_field, [])
        if not (is_system and message.sender_id == SYSTEM_SENDER_ID) and message.sender_id not in members:
            raise Unauthorized(
                f"User {message.sender_id} is not part of conversation {conversation_id}"
            )

        now = self.store.now()
        message_id = await self.store.insert(
            self.messages_path(conversation_id),
            {
                "sender_id": message.sender_id,
                "sender_name": message.sender_name,
                "text": message.text,
                "timestamp": now,
                "type": message.type,
                "edited": False,
                "is_deleted": False,
            },
        )

        if not is_system or self.kind.system_updates_summary:
            await self.store.update(
                self.kind.collection,
                conversation_id,
                {
                    "last_message": {
                        "text": message.text,
                        "sender_id": message.sender_id,
                        "sender_name": message.sender_name,
                        "timestamp": now,
                    },
                    "updated_at": now,
                },
            )
        return message_id

    async def get_message(self, conversation_id: str, message_id: str) -> Document:
        return await self.store.get(self.messages_path(conversation_id), message_id)

    async def update_message(
        self, conversation_id: str, message_id: str, fields: dict[str, Any]
    ) -> None:
        await self.store.update(self.messages_path(conversation_id), message_id, fields)

    async def get_messages(self, conversation_id: str, limit: int) -> list[Document]:
        # newest window first, returned in chronological order
        newest = await self.store.query(
            self.messages_path(conversation_id),
            order_by=OrderBy("timestamp", descending=True),
            limit=limit,
        )
        return list(reversed(newest))

    async def subscribe_messages(
        self, conversation_id: str, callback: SnapshotCallback, window: int
    ) -> Unsubscribe:
        async def chronological(newest: list[Document]) -> None:
            await notify(callback, list(reversed(newest)))

        # the window keeps the newest messages
        return await self.store.subscribe(
            self.messages_path(conversation_id),
            [],
            chronological,
            order_by=OrderBy("timestamp", descending=True),
            limit=window,
        )

    def _member_filters(self, user_id: str) -> list[FieldFilter]:
        return [
            FieldFilter.array_contains(self.kind.member_field, user_id),
            FieldFilter.eq("is_active", True),
        ]

    async def list_for_member(self, user_id: str) -> list[Document]:
        return await self.store.query(
            self.kind.collection,
            self._member_filters(user_id),
            order_by=OrderBy("updated_at", descending=True),
        )

    async def subscribe_for_member(
        self, user_id: str, callback: SnapshotCallback
    ) -> Unsubscribe:
        return await self.store.subscribe(
            self.kind.collection,
            self._member_filters(user_id),
            callback,
            order_by=OrderBy("updated_at", descending=True),
        )

    async def find_one(self, filters: list[FieldFilter]) -> Optional[Document]:
        found = await self.store.query(self.kind.collection, filters, limit=1)
        return found[0] if found else None

    async def deactivate(self, conversation_id: str) -> None:
        await self.store.update(
            self.kind.collection,
            conversation_id,
            {"is_active": False, "updated_at": self.store.now()},
        )
