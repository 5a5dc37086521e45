# collab_core/gateways/project_gateway.py
from typing import Optional

from collab_core.domain.entities import Collections, Document, FieldFilter, OrderBy
from collab_core.domain.exceptions import NotFound
from collab_core.domain.interfaces import AbstractDocumentStore, SnapshotCallback, Unsubscribe
from collab_core.infrastructure import schemas

FALLBACK_OWNER_NAME = "Project Owner"


class ProjectGateway:
    """Project posts plus the read-only profile lookups the chat flows need."""

    def __init__(self, store: AbstractDocumentStore):
        self.store = store

    async def create_post(self, post: schemas.PostCreate) -> str:
        return await self.store.insert(
            Collections.POSTS,
            {
                "title": post.title,
                "description": post.description,
                "tags": list(post.tags),
                "owner_id": post.owner_id,
                "owner_name": post.owner_name,
                "created_at": self.store.now(),
                "group_chat_id": None,
            },
        )

    async def get_post(self, post_id: str) -> Document:
        return await self.store.get(Collections.POSTS, post_id)

    async def link_group_chat(self, post_id: str, chat_id: str) -> None:
        await self.store.update(Collections.POSTS, post_id, {"group_chat_id": chat_id})

    async def list_feed(self, limit: Optional[int] = None) -> list[Document]:
        return await self.store.query(
            Collections.POSTS, order_by=OrderBy("created_at", descending=True), limit=limit
        )

    async def subscribe_feed(
        self, callback: SnapshotCallback, limit: Optional[int] = None
    ) -> Unsubscribe:
        return await self.store.subscribe(
            Collections.POSTS,
            [],
            callback,
            order_by=OrderBy("created_at", descending=True),
            limit=limit,
        )

    async def get_owner_details(self, owner_id: str, project_name: str) -> schemas.OwnerDetails:
        try:
            user = await self.store.get(Collections.USERS, owner_id)
        except NotFound:
            user = None
        if user is not None:
            name = (
                user.data.get("display_name")
                or user.data.get("name")
                or user.data.get("username")
                or "Anonymous"
            )
            return schemas.OwnerDetails(display_name=name, email=user.data.get("email") or "")

        posts = await self.store.query(
            Collections.POSTS,
            [FieldFilter.eq("owner_id", owner_id), FieldFilter.eq("title", project_name)],
            limit=1,
        )
        if posts:
            return schemas.OwnerDetails(
                display_name=posts[0].data.get("owner_name") or "Anonymous", email=""
            )
        return schemas.OwnerDetails(display_name=FALLBACK_OWNER_NAME, email="")
