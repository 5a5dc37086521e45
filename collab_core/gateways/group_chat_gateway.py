# collab_core/gateways/group_chat_gateway.py
from typing import Optional

from collab_core.domain.entities import (
    DELETE_FIELD,
    Collections,
    Document,
    FieldFilter,
    MemberRole,
    array_remove,
    array_union,
)
from collab_core.domain.exceptions import NotFound, Unauthorized
from collab_core.domain.interfaces import AbstractDocumentStore
from collab_core.gateways.conversation_gateway import ConversationGateway, ConversationKind
from collab_core.gateways.interfaces import IGroupChatGateway
from collab_core.infrastructure import schemas

GROUP_CHATS = ConversationKind(collection=Collections.GROUP_CHATS, member_field="member_ids")


class GroupChatGateway(IGroupChatGateway):
    def __init__(self, store: AbstractDocumentStore):
        self.store = store
        self.conversations = ConversationGateway(store, GROUP_CHATS)

    async def get_chat(self, chat_id: str) -> Document:
        return await self.conversations.get(chat_id)

    async def create_chat(self, chat: schemas.GroupChatCreate) -> str:
        now = self.store.now()
        return await self.store.insert(
            Collections.GROUP_CHATS,
            {
                "project_name": chat.project_name,
                "project_id": chat.project_id,
                "description": chat.description,
                "member_ids": [chat.owner_id],
                "members": {
                    chat.owner_id: self._member_entry(
                        chat.owner_id, chat.owner_name, chat.owner_email, MemberRole.OWNER, now
                    )
                },
                "created_at": now,
                "updated_at": now,
                "is_active": True,
                "settings": {"allow_invites": True, "is_public": False},
            },
        )

    async def add_member(
        self, chat_id: str, user_id: str, name: str, email: str, role: MemberRole = MemberRole.MEMBER
    ) -> None:
        now = self.store.now()
        # array and map change in one write so they never disagree
        await self.store.update(
            Collections.GROUP_CHATS,
            chat_id,
            {
                f"members.{user_id}": self._member_entry(user_id, name, email, role, now),
                "member_ids": array_union(user_id),
                "updated_at": now,
            },
        )

    async def remove_member(self, chat_id: str, user_id: str) -> None:
        await self.store.update(
            Collections.GROUP_CHATS,
            chat_id,
            {
                f"members.{user_id}": DELETE_FIELD,
                "member_ids": array_remove(user_id),
                "updated_at": self.store.now(),
            },
        )

    async def mark_read(self, chat_id: str, user_id: str, message_id: str) -> None:
        chat = await self.get_chat(chat_id)
        if user_id not in chat.data.get("members", {}):
            raise Unauthorized(f"User {user_id} is not a member of chat {chat_id}")
        try:
            message = await self.conversations.get_message(chat_id, message_id)
            read_at = message.data.get("timestamp") or self.store.now()
        except NotFound:
            read_at = self.store.now()
        await self.store.update(
            Collections.GROUP_CHATS,
            chat_id,
            {
                f"members.{user_id}.last_read_message_id": message_id,
                f"members.{user_id}.last_read_at": read_at,
            },
        )

    async def find_by_project(
        self, project_id: Optional[str], project_name: str
    ) -> Optional[Document]:
        if project_id:
            chat = await self.conversations.find_one(
                [FieldFilter.eq("project_id", project_id), FieldFilter.eq("is_active", True)]
            )
            if chat is not None:
                return chat
        # chats created without a project id can only be found by name
        return await self.conversations.find_one(
            [
                FieldFilter.eq("project_name", project_name),
                FieldFilter.eq("project_id", None),
                FieldFilter.eq("is_active", True),
            ]
        )

    async def find_by_project_name(self, project_name: str) -> Optional[Document]:
        return await self.conversations.find_one(
            [FieldFilter.eq("project_name", project_name), FieldFilter.eq("is_active", True)]
        )

    @staticmethod
    def _member_entry(user_id, name, email, role, joined_at) -> dict:
        return {
            "user_id": user_id,
            "display_name": name,
            "email": email,
            "joined_at": joined_at,
            "role": role,
            "last_read_message_id": None,
            "last_read_at": None,
        }
