# collab_core/interactors/project_interactor.py
import logging
from typing import List, Optional

from collab_core.domain.exceptions import CollabError, NotFound
from collab_core.domain.interfaces import Unsubscribe
from collab_core.gateways.project_gateway import ProjectGateway
from collab_core.infrastructure import schemas
from collab_core.infrastructure.subscriptions import noop_unsubscribe, typed_callback
from collab_core.interactors.group_chat_interactor import GroupChatInteractor


class ProjectInteractor:
    def __init__(
        self,
        project_gateway: ProjectGateway,
        group_chats: GroupChatInteractor,
        logger: logging.Logger,
    ):
        self.project_gateway = project_gateway
        self.group_chats = group_chats
        self.logger = logger

    async def create_post(self, post: schemas.PostCreate) -> schemas.OperationResult:
        """Publish a project post and open its group chat, owned by the poster."""
        try:
            post_id = await self.project_gateway.create_post(post)
        except CollabError as e:
            self.logger.error(f"Error creating post {post.title}: {e!s}")
            return schemas.OperationResult.fail(e)

        try:
            chat_id = await self.group_chats.ensure_project_chat(
                post_id, post.title, post.owner_id, post.owner_name, post.owner_email
            )
            await self.project_gateway.link_group_chat(post_id, chat_id)
        except CollabError as e:
            # the chat is created again on the first accepted request
            self.logger.warning(f"Post {post_id} created without a group chat: {e!s}")
            return schemas.OperationResult.ok(post_id, group_chat_id=None)
        return schemas.OperationResult.ok(post_id, group_chat_id=chat_id)

    async def get_post(self, post_id: str) -> Optional[schemas.ProjectPost]:
        try:
            return schemas.parse(schemas.ProjectPost, await self.project_gateway.get_post(post_id))
        except NotFound:
            return None
        except CollabError as e:
            self.logger.error(f"Error fetching post {post_id}: {e!s}")
            return None

    async def get_feed(self, limit: Optional[int] = None) -> List[schemas.ProjectPost]:
        try:
            posts = await self.project_gateway.list_feed(limit)
            return [schemas.parse(schemas.ProjectPost, p) for p in posts]
        except CollabError as e:
            self.logger.error(f"Error fetching feed: {e!s}")
            return []

    async def subscribe_feed(self, callback, limit: Optional[int] = None) -> Unsubscribe:
        try:
            return await self.project_gateway.subscribe_feed(
                typed_callback(schemas.ProjectPost, callback), limit
            )
        except CollabError as e:
            self.logger.error(f"Error in feed subscription: {e!s}")
            return noop_unsubscribe
