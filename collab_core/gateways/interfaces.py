# collab_core/gateways/interfaces.py
from abc import ABC, abstractmethod
from typing import Any, List, Optional

from collab_core.domain.entities import Document, MemberRole, RequestStatus
from collab_core.infrastructure import schemas


class IGroupChatGateway(ABC):
    @abstractmethod
    async def get_chat(self, chat_id: str) -> Document:
        pass

    @abstractmethod
    async def create_chat(self, chat: schemas.GroupChatCreate) -> str:
        pass

    @abstractmethod
    async def add_member(
        self, chat_id: str, user_id: str, name: str, email: str, role: MemberRole = MemberRole.MEMBER
    ) -> None:
        pass

    @abstractmethod
    async def remove_member(self, chat_id: str, user_id: str) -> None:
        pass

    @abstractmethod
    async def mark_read(self, chat_id: str, user_id: str, message_id: str) -> None:
        pass

    @abstractmethod
    async def find_by_project(
        self, project_id: Optional[str], project_name: str
    ) -> Optional[Document]:
        pass


class IRequestGateway(ABC):
    @abstractmethod
    async def get_request(self, request_id: str) -> Document:
        pass

    @abstractmethod
    async def create_request(self, request: schemas.RequestCreate) -> str:
        pass

    @abstractmethod
    async def find_pending(
        self, from_user_id: str, to_user_id: str, project_name: str, project_id: Optional[str]
    ) -> Optional[Document]:
        pass

    @abstractmethod
    async def set_status(self, request_id: str, status: RequestStatus, side_effects: List[str]) -> None:
        pass

    @abstractmethod
    async def update_fields(self, request_id: str, fields: dict[str, Any]) -> None:
        pass


class IRequestDMGateway(ABC):
    @abstractmethod
    async def get_dm(self, dm_id: str) -> Document:
        pass

    @abstractmethod
    async def find_active_by_request(self, request_id: str) -> Optional[Document]:
        pass

    @abstractmethod
    async def create_dm(self, dm: schemas.RequestDMCreate) -> str:
        pass

    @abstractmethod
    async def deactivate(self, dm_id: str) -> None:
        pass
