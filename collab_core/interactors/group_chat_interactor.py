# collab_core/interactors/group_chat_interactor.py
import logging
from typing import List, Optional

from collab_core.domain.entities import MemberRole
from collab_core.domain.exceptions import CollabError, NotFound, Unauthorized
from collab_core.domain.interfaces import Unsubscribe
from collab_core.gateways.group_chat_gateway import GroupChatGateway
from collab_core.infrastructure import schemas
from collab_core.infrastructure.redis_client import RedisClient
from collab_core.infrastructure.subscriptions import noop_unsubscribe, typed_callback

DELETED_MESSAGE_TEXT = "<This message has been deleted>"
MODERATOR_ROLES = (MemberRole.OWNER, MemberRole.ADMIN)


class GroupChatInteractor:
    def __init__(
        self,
        chat_gateway: GroupChatGateway,
        locks: RedisClient,
        logger: logging.Logger,
        message_window: int = 100,
        fetch_limit: int = 50,
    ):
        self.chat_gateway = chat_gateway
        self.locks = locks
        self.logger = logger
        self.message_window = message_window
        self.fetch_limit = fetch_limit

    async def create_group_chat(self, chat: schemas.GroupChatCreate) -> schemas.OperationResult:
        try:
            chat_id = await self.chat_gateway.create_chat(chat)
        except CollabError as e:
            self.logger.error(f"Error creating group chat for {chat.project_name}: {e!s}")
            return schemas.OperationResult.fail(e)
        self.logger.info(f"Created group chat {chat_id} for project {chat.project_name}")
        return schemas.OperationResult.ok(chat_id)

    async def ensure_project_chat(
        self,
        project_id: Optional[str],
        project_name: str,
        owner_id: str,
        owner_name: str,
        owner_email: str,
    ) -> str:
        """Return the id of the project's active group chat, creating it if absent.

        Raises ``CollabError``; callers decide how to report it.
        """
        async with self.locks.lock(f"group-chat:{project_id or project_name}"):
            existing = await self.chat_gateway.find_by_project(project_id, project_name)
            if existing is not None:
                return existing.id
            self.logger.info(f"No group chat found for project {project_name}. Creating one...")
            return await self.chat_gateway.create_chat(
                schemas.GroupChatCreate(
                    project_name=project_name,
                    project_id=project_id,
                    description=f"Group chat for {project_name}",
                    owner_id=owner_id,
                    owner_name=owner_name,
                    owner_email=owner_email,
                )
            )

    def _members_lock(self, chat_id: str):
        # membership writes and read cursors of one chat never interleave
        return self.locks.lock(f"group-chat-members:{chat_id}")

    async def admit_member(self, chat_id: str, user_id: str, name: str, email: str = "") -> None:
        """Add a member under the chat's membership lock. Raises ``CollabError``."""
        async with self._members_lock(chat_id):
            await self.chat_gateway.add_member(chat_id, user_id, name, email)

    async def add_member(
        self, chat_id: str, user_id: str, name: str, email: str = ""
    ) -> schemas.OperationResult:
        try:
            await self.admit_member(chat_id, user_id, name, email)
        except CollabError as e:
            self.logger.error(f"Error adding user {user_id} to group chat {chat_id}: {e!s}")
            return schemas.OperationResult.fail(e)
        return schemas.OperationResult.ok(chat_id)

    async def remove_member(self, chat_id: str, user_id: str) -> schemas.OperationResult:
        try:
            async with self._members_lock(chat_id):
                await self.chat_gateway.remove_member(chat_id, user_id)
        except CollabError as e:
            self.logger.error(f"Error removing user {user_id} from group chat {chat_id}: {e!s}")
            return schemas.OperationResult.fail(e)
        return schemas.OperationResult.ok(chat_id)

    async def send_message(
        self, chat_id: str, message: schemas.MessageCreate
    ) -> schemas.OperationResult:
        try:
            message_id = await self.chat_gateway.conversations.append_message(chat_id, message)
        except CollabError as e:
            self.logger.error(f"Error sending group chat message to {chat_id}: {e!s}")
            return schemas.OperationResult.fail(e)
        return schemas.OperationResult.ok(message_id)

    async def mark_read(
        self, chat_id: str, user_id: str, last_message_id: str
    ) -> schemas.OperationResult:
        try:
            async with self._members_lock(chat_id):
                await self.chat_gateway.mark_read(chat_id, user_id, last_message_id)
        except CollabError as e:
            self.logger.error(f"Error marking messages as read in {chat_id}: {e!s}")
            return schemas.OperationResult.fail(e)
        return schemas.OperationResult.ok(chat_id)

    async def edit_message(
        self, chat_id: str, message_id: str, user_id: str, text: str
    ) -> schemas.OperationResult:
        try:
            await self._authorize_change(chat_id, message_id, user_id)
            await self.chat_gateway.conversations.update_message(
                chat_id,
                message_id,
                {"text": text, "edited": True, "edited_at": self.chat_gateway.store.now()},
            )
        except CollabError as e:
            self.logger.error(f"Error editing message {message_id} in {chat_id}: {e!s}")
            return schemas.OperationResult.fail(e)
        return schemas.OperationResult.ok(message_id)

    async def delete_message(
        self, chat_id: str, message_id: str, user_id: str
    ) -> schemas.OperationResult:
        try:
            await self._authorize_change(chat_id, message_id, user_id)
            await self.chat_gateway.conversations.update_message(
                chat_id,
                message_id,
                {
                    "text": DELETED_MESSAGE_TEXT,
                    "is_deleted": True,
                    "edited_at": self.chat_gateway.store.now(),
                },
            )
        except CollabError as e:
            self.logger.error(f"Error deleting message {message_id} in {chat_id}: {e!s}")
            return schemas.OperationResult.fail(e)
        return schemas.OperationResult.ok(message_id)

    async def _authorize_change(self, chat_id: str, message_id: str, user_id: str) -> None:
        chat = schemas.parse(schemas.GroupChat, await self.chat_gateway.get_chat(chat_id))
        message = await self.chat_gateway.conversations.get_message(chat_id, message_id)
        if message.data.get("sender_id") == user_id:
            return
        member = chat.members.get(user_id)
        if member is None or member.role not in MODERATOR_ROLES:
            raise Unauthorized(f"User {user_id} may not change message {message_id}")

    async def get_chat(self, chat_id: str) -> Optional[schemas.GroupChat]:
        try:
            return schemas.parse(schemas.GroupChat, await self.chat_gateway.get_chat(chat_id))
        except NotFound:
            return None
        except CollabError as e:
            self.logger.error(f"Error fetching group chat {chat_id}: {e!s}")
            return None

    async def get_chat_by_project_name(self, project_name: str) -> Optional[schemas.GroupChat]:
        """First active chat whose project name matches; names are not unique."""
        try:
            chat = await self.chat_gateway.find_by_project_name(project_name)
            return schemas.parse(schemas.GroupChat, chat) if chat else None
        except CollabError as e:
            self.logger.error(f"Error finding group chat by project name {project_name}: {e!s}")
            return None

    async def get_user_chats(self, user_id: str) -> List[schemas.GroupChat]:
        try:
            chats = await self.chat_gateway.conversations.list_for_member(user_id)
            return [schemas.parse(schemas.GroupChat, chat) for chat in chats]
        except CollabError as e:
            self.logger.error(f"Error fetching group chats for {user_id}: {e!s}")
            return []

    async def subscribe_user_chats(self, user_id: str, callback) -> Unsubscribe:
        try:
            return await self.chat_gateway.conversations.subscribe_for_member(
                user_id, typed_callback(schemas.GroupChat, callback)
            )
        except CollabError as e:
            self.logger.error(f"Error in chat subscription for {user_id}: {e!s}")
            return noop_unsubscribe

    async def get_messages(
        self, chat_id: str, limit: Optional[int] = None
    ) -> List[schemas.Message]:
        try:
            messages = await self.chat_gateway.conversations.get_messages(
                chat_id, limit or self.fetch_limit
            )
            return [schemas.parse(schemas.Message, m) for m in messages]
        except CollabError as e:
            self.logger.error(f"Error fetching group chat messages for {chat_id}: {e!s}")
            return []

    async def subscribe_messages(self, chat_id: str, callback) -> Unsubscribe:
        try:
            return await self.chat_gateway.conversations.subscribe_messages(
                chat_id, typed_callback(schemas.Message, callback), self.message_window
            )
        except CollabError as e:
            self.logger.error(f"Error in messages subscription for {chat_id}: {e!s}")
            return noop_unsubscribe
