# collab_core/domain/interfaces.py
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Any, Optional

from collab_core.domain.entities import Document, FieldFilter, OrderBy

Unsubscribe = Callable[[], None]
SnapshotCallback = Callable[[list[Document]], Any]
AuthListener = Callable[[Optional[str]], Any]


class AbstractDocumentStore(ABC):
    @abstractmethod
    def now(self) -> datetime:
        pass

    @abstractmethod
    async def get(self, collection: str, document_id: str) -> Document:
        pass

    @abstractmethod
    async def put(self, collection: str, document_id: str, fields: dict[str, Any], merge: bool = True) -> None:
        pass

    @abstractmethod
    async def update(self, collection: str, document_id: str, fields: dict[str, Any]) -> None:
        pass

    @abstractmethod
    async def insert(self, collection: str, fields: dict[str, Any]) -> str:
        pass

    @abstractmethod
    async def delete(self, collection: str, document_id: str) -> None:
        pass

    @abstractmethod
    async def query(
        self,
        collection: str,
        filters: Sequence[FieldFilter] = (),
        order_by: Optional[OrderBy] = None,
        limit: Optional[int] = None,
    ) -> list[Document]:
        pass

    @abstractmethod
    async def subscribe(
        self,
        collection: str,
        filters: Sequence[FieldFilter],
        callback: SnapshotCallback,
        order_by: Optional[OrderBy] = None,
        limit: Optional[int] = None,
    ) -> Unsubscribe:
        pass


class AbstractAuthProvider(ABC):
    @abstractmethod
    def current_user_id(self) -> Optional[str]:
        pass

    @abstractmethod
    async def current_user_profile(self) -> Optional[dict[str, Any]]:
        pass

    @abstractmethod
    def add_listener(self, listener: AuthListener) -> Unsubscribe:
        """Register for signed-in/out notifications; the listener receives the new user id or None."""
        pass
