# collab_core/infrastructure/document_store.py
import logging
import uuid
from collections.abc import Sequence
from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from collab_core.domain.entities import Document, FieldFilter, OrderBy
from collab_core.domain.events import DocumentChanged
from collab_core.domain.exceptions import NotFound, StoreUnavailable
from collab_core.domain.interfaces import (
    AbstractDocumentStore,
    SnapshotCallback,
    Unsubscribe,
)
from collab_core.infrastructure.event_dispatcher import EventDispatcher
from collab_core.infrastructure.field_ops import apply_update, matches, sort_documents
from collab_core.infrastructure.models import Base, DocumentRecord
from collab_core.infrastructure.subscriptions import SubscriptionHub


class SQLDocumentStore(AbstractDocumentStore):
    """Document store over a single SQLAlchemy table of JSON documents.

    Every committed write raises a ``DocumentChanged`` event on the
    dispatcher; the store's own ``SubscriptionHub`` is registered for it so
    that live queries re-run after each change. Filtering and ordering are
    evaluated on the documents of one collection, which is adequate for the
    small per-project collections this core manages.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        dispatcher: EventDispatcher,
        logger: logging.Logger,
        origin: Optional[str] = None,
    ):
        self.engine = engine
        self.SessionLocal = async_sessionmaker(
            engine, class_=AsyncSession, expire_on_commit=False
        )
        self.dispatcher = dispatcher
        self.logger = logger
        self.origin = origin or uuid.uuid4().hex
        self._last_timestamp: Optional[datetime] = None
        self.live_queries = SubscriptionHub(self.query, logger)
        dispatcher.register("DocumentChanged", self.live_queries.on_document_changed)

    async def create_schema(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        self.logger.info("Document tables ready")

    async def dispose(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def session(self):
        async with self.SessionLocal() as session:
            yield session

    def now(self) -> datetime:
        current = datetime.now(UTC)
        if self._last_timestamp is not None and current <= self._last_timestamp:
            current = self._last_timestamp + timedelta(microseconds=1)
        self._last_timestamp = current
        return current

    async def get(self, collection: str, document_id: str) -> Document:
        try:
            async with self.session() as session:
                record = await session.get(DocumentRecord, (collection, document_id))
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Failed to read {collection}/{document_id}: {e!s}") from e
        if record is None:
            raise NotFound(collection, document_id)
        return Document(collection, record.id, dict(record.data or {}))

    async def insert(self, collection: str, fields: dict[str, Any]) -> str:
        document_id = uuid.uuid4().hex
        await self._write(collection, document_id, fields, merge=False, must_exist=False)
        return document_id

    async def put(
        self, collection: str, document_id: str, fields: dict[str, Any], merge: bool = True
    ) -> None:
        await self._write(collection, document_id, fields, merge=merge, must_exist=False)

    async def update(self, collection: str, document_id: str, fields: dict[str, Any]) -> None:
        await self._write(collection, document_id, fields, merge=True, must_exist=True)

    async def delete(self, collection: str, document_id: str) -> None:
        try:
            async with self.session() as session:
                async with session.begin():
                    record = await session.get(DocumentRecord, (collection, document_id))
                    if record is None:
                        return
                    await session.delete(record)
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Failed to delete {collection}/{document_id}: {e!s}") from e
        await self._changed(collection, document_id, "deleted")

    async def query(
        self,
        collection: str,
        filters: Sequence[FieldFilter] = (),
        order_by: Optional[OrderBy] = None,
        limit: Optional[int] = None,
    ) -> list[Document]:
        stmt = (
            select(DocumentRecord)
            .filter(DocumentRecord.collection == collection)
            .order_by(DocumentRecord.created_at, DocumentRecord.id)
        )
        try:
            async with self.session() as session:
                result = await session.execute(stmt)
                records = result.scalars().all()
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Failed to query {collection}: {e!s}") from e

        documents = [
            Document(collection, record.id, dict(record.data or {}))
            for record in records
            if matches(record.data or {}, filters)
        ]
        if order_by is not None:
            documents = sort_documents(documents, order_by)
        if limit is not None:
            documents = documents[:limit]
        return documents

    async def subscribe(
        self,
        collection: str,
        filters: Sequence[FieldFilter],
        callback: SnapshotCallback,
        order_by: Optional[OrderBy] = None,
        limit: Optional[int] = None,
    ) -> Unsubscribe:
        return await self.live_queries.subscribe(
            collection, filters, callback, order_by=order_by, limit=limit
        )

    async def _write(
        self,
        collection: str,
        document_id: str,
        fields: dict[str, Any],
        merge: bool,
        must_exist: bool,
    ) -> None:
        try:
            async with self.session() as session:
                async with session.begin():
                    record = await session.get(DocumentRecord, (collection, document_id))
                    if record is None:
                        if must_exist:
                            raise NotFound(collection, document_id)
                        record = DocumentRecord(
                            collection=collection,
                            id=document_id,
                            data=apply_update({}, fields),
                            created_at=self.now(),
                        )
                        session.add(record)
                        change = "created"
                    else:
                        base = (record.data or {}) if merge else {}
                        record.data = apply_update(base, fields)
                        change = "updated"
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Failed to write {collection}/{document_id}: {e!s}") from e
        await self._changed(collection, document_id, change)

    async def _changed(self, collection: str, document_id: str, change: str) -> None:
        self.logger.debug(f"{change} {collection}/{document_id}")
        await self.dispatcher.dispatch(
            DocumentChanged(
                collection=collection,
                document_id=document_id,
                change=change,
                origin=self.origin,
            )
        )
