# collab_core/infrastructure/subscriptions.py
import inspect
import itertools
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Optional

from pydantic import BaseModel

from collab_core.domain.entities import Document, FieldFilter, OrderBy
from collab_core.domain.events import DocumentChanged
from collab_core.domain.interfaces import SnapshotCallback, Unsubscribe

QueryFn = Callable[..., Awaitable[list[Document]]]


async def notify(callback: Callable[[Any], Any], payload: Any) -> None:
    """Invoke a plain or async callback."""
    result = callback(payload)
    if inspect.isawaitable(result):
        await result


def typed_callback(schema: type[BaseModel], callback: Callable[[list], Any]) -> SnapshotCallback:
    """Adapt a callback expecting schema objects to a raw document snapshot callback."""

    async def deliver(documents: list[Document]) -> None:
        await notify(callback, [schema.model_validate(d.to_dict()) for d in documents])

    return deliver


def noop_unsubscribe() -> None:
    pass


@dataclass
class LiveQuery:
    id: int
    collection: str
    filters: tuple[FieldFilter, ...]
    order_by: Optional[OrderBy]
    limit: Optional[int]
    callback: SnapshotCallback
    active: bool = True
    deliveries: int = field(default=0)


class SubscriptionHub:
    """Keeps the live queries of one process and re-delivers their full
    result set whenever a document in their collection changes."""

    def __init__(self, query: QueryFn, logger: logging.Logger):
        self._query = query
        self.logger = logger
        self._ids = itertools.count(1)
        self._live: dict[int, LiveQuery] = {}

    def __len__(self) -> int:
        return len(self._live)

    async def subscribe(
        self,
        collection: str,
        filters: Sequence[FieldFilter],
        callback: SnapshotCallback,
        order_by: Optional[OrderBy] = None,
        limit: Optional[int] = None,
    ) -> Unsubscribe:
        live = LiveQuery(
            id=next(self._ids),
            collection=collection,
            filters=tuple(filters),
            order_by=order_by,
            limit=limit,
            callback=callback,
        )
        snapshot = await self._run(live)
        self._live[live.id] = live
        self.logger.debug(f"Live query {live.id} opened on {collection}")
        await self._deliver(live, snapshot)

        def unsubscribe() -> None:
            live.active = False
            if self._live.pop(live.id, None) is not None:
                self.logger.debug(f"Live query {live.id} on {collection} cancelled")

        return unsubscribe

    async def on_document_changed(self, event: DocumentChanged) -> None:
        interested = [
            live for live in list(self._live.values())
            if live.collection == event.collection
        ]
        for live in interested:
            if not live.active:
                continue
            try:
                snapshot = await self._run(live)
            except Exception:
                self.logger.exception(
                    f"Error refreshing live query {live.id} on {live.collection}"
                )
                continue
            await self._deliver(live, snapshot)

    def cancel_all(self) -> None:
        for live in self._live.values():
            live.active = False
        self._live.clear()

    async def _run(self, live: LiveQuery) -> list[Document]:
        return await self._query(
            live.collection, live.filters, order_by=live.order_by, limit=live.limit
        )

    async def _deliver(self, live: LiveQuery, snapshot: list[Document]) -> None:
        if not live.active:
            return
        live.deliveries += 1
        try:
            await notify(live.callback, snapshot)
        except Exception as e:
            self.logger.error(
                f"Error in live query callback for {live.collection}: {e!s}"
            )


class SubscriptionRegistry:
    """Unsubscribe handles keyed by the entity they track.

    Replacing a key cancels the handle previously stored under it.
    """

    def __init__(self) -> None:
        self._handles: dict[str, Unsubscribe] = {}

    def __contains__(self, key: str) -> bool:
        return key in self._handles

    def __len__(self) -> int:
        return len(self._handles)

    def keys(self) -> set[str]:
        return set(self._handles)

    def replace(self, key: str, handle: Unsubscribe) -> None:
        previous = self._handles.pop(key, None)
        if previous is not None:
            previous()
        self._handles[key] = handle

    def cancel(self, key: str) -> bool:
        handle = self._handles.pop(key, None)
        if handle is None:
            return False
        handle()
        return True

    def cancel_all(self) -> None:
        for key in list(self._handles):
            self.cancel(key)
