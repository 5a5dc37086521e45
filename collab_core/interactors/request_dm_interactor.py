# collab_core/interactors/request_dm_interactor.py
import logging
from typing import List, Optional

from collab_core.domain.entities import MessageType, RequestStatus
from collab_core.domain.exceptions import CollabError, InvalidTransition, NotFound
from collab_core.domain.interfaces import Unsubscribe
from collab_core.gateways.conversation_gateway import SYSTEM_SENDER_ID
from collab_core.gateways.request_dm_gateway import RequestDMGateway
from collab_core.gateways.request_gateway import RequestGateway
from collab_core.infrastructure import schemas
from collab_core.infrastructure.redis_client import RedisClient
from collab_core.infrastructure.subscriptions import noop_unsubscribe, typed_callback

OPENING_NOTICE = (
    'This is a temporary chat about the request to join "{project_name}". '
    "This conversation will be closed when the request is resolved."
)


class RequestDMInteractor:
    """Two-party conversations that live only while their join request is pending.

    Unread counts are never tracked for these conversations.
    """

    def __init__(
        self,
        dm_gateway: RequestDMGateway,
        request_gateway: RequestGateway,
        locks: RedisClient,
        logger: logging.Logger,
        message_window: int = 100,
        fetch_limit: int = 50,
    ):
        self.dm_gateway = dm_gateway
        self.request_gateway = request_gateway
        self.locks = locks
        self.logger = logger
        self.message_window = message_window
        self.fetch_limit = fetch_limit

    async def create_request_dm(self, dm: schemas.RequestDMCreate) -> schemas.OperationResult:
        try:
            # same lock as the request's status transitions
            async with self.locks.lock(f"request:{dm.request_id}"):
                existing = await self.dm_gateway.find_active_by_request(dm.request_id)
                if existing is not None:
                    return schemas.OperationResult.ok(existing.id, created=False)
                request = await self.request_gateway.get_request(dm.request_id)
                status = RequestStatus(request.data.get("status", RequestStatus.PENDING))
                if status.is_terminal:
                    raise InvalidTransition(dm.request_id, status.value, "negotiation")
                dm_id = await self.dm_gateway.create_dm(dm)
                await self.request_gateway.mark_has_dm(dm.request_id)
                await self.dm_gateway.conversations.append_message(
                    dm_id,
                    schemas.MessageCreate(
                        sender_id=SYSTEM_SENDER_ID,
                        sender_name="System",
                        text=OPENING_NOTICE.format(project_name=dm.project_name),
                        type=MessageType.SYSTEM,
                    ),
                )
        except CollabError as e:
            self.logger.error(f"Error creating request DM for {dm.request_id}: {e!s}")
            return schemas.OperationResult.fail(e)
        self.logger.info(f"Opened request DM {dm_id} for request {dm.request_id}")
        return schemas.OperationResult.ok(dm_id, created=True)

    async def send_message(
        self, dm_id: str, message: schemas.MessageCreate
    ) -> schemas.OperationResult:
        try:
            message_id = await self.dm_gateway.conversations.append_message(dm_id, message)
        except CollabError as e:
            self.logger.error(f"Error sending request DM message to {dm_id}: {e!s}")
            return schemas.OperationResult.fail(e)
        return schemas.OperationResult.ok(message_id)

    async def close_dm(self, request_id: str) -> schemas.OperationResult:
        try:
            await self.close_for_request(request_id)
        except CollabError as e:
            self.logger.error(f"Error closing request DM for {request_id}: {e!s}")
            return schemas.OperationResult.fail(e)
        return schemas.OperationResult.ok(request_id)

    async def close_for_request(self, request_id: str) -> Optional[str]:
        """Deactivate the request's active DM, if any. Raises ``CollabError``."""
        dm = await self.dm_gateway.find_active_by_request(request_id)
        if dm is None:
            return None
        await self.dm_gateway.deactivate(dm.id)
        self.logger.info(f"Closed request DM {dm.id} for request {request_id}")
        return dm.id

    async def get_dm(self, dm_id: str) -> Optional[schemas.RequestDM]:
        try:
            return schemas.parse(schemas.RequestDM, await self.dm_gateway.get_dm(dm_id))
        except NotFound:
            return None
        except CollabError as e:
            self.logger.error(f"Error fetching request DM {dm_id}: {e!s}")
            return None

    async def get_dm_by_request(self, request_id: str) -> Optional[schemas.RequestDM]:
        try:
            dm = await self.dm_gateway.find_active_by_request(request_id)
            return schemas.parse(schemas.RequestDM, dm) if dm else None
        except CollabError as e:
            self.logger.error(f"Error getting request DM by request id {request_id}: {e!s}")
            return None

    async def get_user_dms(self, user_id: str) -> List[schemas.RequestDM]:
        try:
            dms = await self.dm_gateway.conversations.list_for_member(user_id)
            return [schemas.parse(schemas.RequestDM, dm) for dm in dms]
        except CollabError as e:
            self.logger.error(f"Error fetching request DMs for {user_id}: {e!s}")
            return []

    async def subscribe_user_dms(self, user_id: str, callback) -> Unsubscribe:
        try:
            return await self.dm_gateway.conversations.subscribe_for_member(
                user_id, typed_callback(schemas.RequestDM, callback)
            )
        except CollabError as e:
            self.logger.error(f"Error in request DM subscription for {user_id}: {e!s}")
            return noop_unsubscribe

    async def get_messages(
        self, dm_id: str, limit: Optional[int] = None
    ) -> List[schemas.Message]:
        """Direct lookup; also works once the DM has been closed."""
        try:
            messages = await self.dm_gateway.conversations.get_messages(
                dm_id, limit or self.fetch_limit
            )
            return [schemas.parse(schemas.Message, m) for m in messages]
        except CollabError as e:
            self.logger.error(f"Error fetching request DM messages for {dm_id}: {e!s}")
            return []

    async def subscribe_messages(self, dm_id: str, callback) -> Unsubscribe:
        try:
            return await self.dm_gateway.conversations.subscribe_messages(
                dm_id, typed_callback(schemas.Message, callback), self.message_window
            )
        except CollabError as e:
            self.logger.error(f"Error in request DM messages subscription for {dm_id}: {e!s}")
            return noop_unsubscribe

    @staticmethod
    def unread_count(dm_id: str) -> int:
        return 0
