# collab_core/gateways/request_dm_gateway.py
from typing import Optional

from collab_core.domain.entities import Collections, Document, FieldFilter
from collab_core.domain.interfaces import AbstractDocumentStore
from collab_core.gateways.conversation_gateway import ConversationGateway, ConversationKind
from collab_core.gateways.interfaces import IRequestDMGateway
from collab_core.infrastructure import schemas

REQUEST_DMS = ConversationKind(collection=Collections.REQUEST_DMS, member_field="participants")


class RequestDMGateway(IRequestDMGateway):
    def __init__(self, store: AbstractDocumentStore):
        self.store = store
        self.conversations = ConversationGateway(store, REQUEST_DMS)

    async def get_dm(self, dm_id: str) -> Document:
        return await self.conversations.get(dm_id)

    async def find_active_by_request(self, request_id: str) -> Optional[Document]:
        return await self.conversations.find_one(
            [FieldFilter.eq("request_id", request_id), FieldFilter.eq("is_active", True)]
        )

    async def create_dm(self, dm: schemas.RequestDMCreate) -> str:
        now = self.store.now()
        return await self.store.insert(
            Collections.REQUEST_DMS,
            {
                "request_id": dm.request_id,
                "participants": sorted([dm.requester_id, dm.owner_id]),
                # snapshot; not refreshed when a profile changes later
                "participant_details": {
                    dm.requester_id: {
                        "user_id": dm.requester_id,
                        "display_name": dm.requester_name,
                        "email": dm.requester_email,
                    },
                    dm.owner_id: {
                        "user_id": dm.owner_id,
                        "display_name": dm.owner_name,
                        "email": dm.owner_email,
                    },
                },
                "project_context": {
                    "project_id": dm.project_id,
                    "project_name": dm.project_name,
                },
                "created_at": now,
                "updated_at": now,
                "is_active": True,
            },
        )

    async def deactivate(self, dm_id: str) -> None:
        await self.conversations.deactivate(dm_id)
