# collab_core/gateways/request_gateway.py
from typing import Any, List, Optional

from collab_core.domain.entities import (
    Collections,
    Document,
    FieldFilter,
    OrderBy,
    RequestStatus,
    SideEffect,
    array_remove,
)
from collab_core.domain.interfaces import AbstractDocumentStore, SnapshotCallback, Unsubscribe
from collab_core.gateways.interfaces import IRequestGateway
from collab_core.infrastructure import schemas

REQUEST_TYPE = "join_project"


class RequestGateway(IRequestGateway):
    def __init__(self, store: AbstractDocumentStore):
        self.store = store

    async def get_request(self, request_id: str) -> Document:
        return await self.store.get(Collections.REQUESTS, request_id)

    async def create_request(self, request: schemas.RequestCreate) -> str:
        now = self.store.now()
        return await self.store.insert(
            Collections.REQUESTS,
            {
                "from_user_id": request.from_user_id,
                "from_user_name": request.from_user_name,
                "from_user_email": request.from_user_email,
                "to_user_id": request.to_user_id,
                "project_id": request.project_id,
                "project_name": request.project_name,
                "message": request.message,
                "status": RequestStatus.PENDING,
                "type": REQUEST_TYPE,
                "created_at": now,
                "updated_at": now,
                "has_dm": False,
                "pending_side_effects": [],
            },
        )

    async def find_pending(
        self, from_user_id: str, to_user_id: str, project_name: str, project_id: Optional[str]
    ) -> Optional[Document]:
        filters = [
            FieldFilter.eq("from_user_id", from_user_id),
            FieldFilter.eq("to_user_id", to_user_id),
            FieldFilter.eq("type", REQUEST_TYPE),
            FieldFilter.eq("status", RequestStatus.PENDING),
        ]
        if project_id:
            filters.append(FieldFilter.eq("project_id", project_id))
        else:
            filters.append(FieldFilter.eq("project_name", project_name))
        found = await self.store.query(Collections.REQUESTS, filters, limit=1)
        return found[0] if found else None

    async def set_status(
        self, request_id: str, status: RequestStatus, side_effects: List[str]
    ) -> None:
        # status and its outstanding side effects land in the same write
        await self.store.update(
            Collections.REQUESTS,
            request_id,
            {
                "status": status,
                "updated_at": self.store.now(),
                "pending_side_effects": list(side_effects),
            },
        )

    async def update_fields(self, request_id: str, fields: dict[str, Any]) -> None:
        await self.store.update(Collections.REQUESTS, request_id, fields)

    async def mark_has_dm(self, request_id: str) -> None:
        await self.update_fields(
            request_id, {"has_dm": True, "updated_at": self.store.now()}
        )

    async def complete_side_effect(self, request_id: str, effect: SideEffect, **fields: Any) -> None:
        await self.update_fields(
            request_id, {"pending_side_effects": array_remove(effect), **fields}
        )

    async def list_with_side_effect(self, effect: SideEffect) -> list[Document]:
        return await self.store.query(
            Collections.REQUESTS,
            [FieldFilter.array_contains("pending_side_effects", effect)],
            order_by=OrderBy("updated_at"),
        )

    @staticmethod
    def _pending_filters(field: str, user_id: str) -> list[FieldFilter]:
        return [
            FieldFilter.eq(field, user_id),
            FieldFilter.eq("status", RequestStatus.PENDING),
        ]

    async def list_incoming(self, user_id: str) -> list[Document]:
        return await self.store.query(
            Collections.REQUESTS,
            self._pending_filters("to_user_id", user_id),
            order_by=OrderBy("created_at", descending=True),
        )

    async def list_outgoing(self, user_id: str) -> list[Document]:
        return await self.store.query(
            Collections.REQUESTS,
            self._pending_filters("from_user_id", user_id),
            order_by=OrderBy("created_at", descending=True),
        )

    async def subscribe_incoming(self, user_id: str, callback: SnapshotCallback) -> Unsubscribe:
        return await self.store.subscribe(
            Collections.REQUESTS,
            self._pending_filters("to_user_id", user_id),
            callback,
            order_by=OrderBy("created_at", descending=True),
        )

    async def subscribe_outgoing(self, user_id: str, callback: SnapshotCallback) -> Unsubscribe:
        return await self.store.subscribe(
            Collections.REQUESTS,
            self._pending_filters("from_user_id", user_id),
            callback,
            order_by=OrderBy("created_at", descending=True),
        )
