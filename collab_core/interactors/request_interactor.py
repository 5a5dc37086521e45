# collab_core/interactors/request_interactor.py
import logging
from typing import List, Optional

from collab_core.domain.entities import RequestStatus, SideEffect
from collab_core.domain.events import RequestStatusChanged
from collab_core.domain.exceptions import CollabError, InvalidTransition, NotFound
from collab_core.domain.interfaces import Unsubscribe
from collab_core.gateways.project_gateway import ProjectGateway
from collab_core.gateways.request_gateway import RequestGateway
from collab_core.infrastructure import schemas
from collab_core.infrastructure.event_dispatcher import EventDispatcher
from collab_core.infrastructure.redis_client import RedisClient
from collab_core.infrastructure.subscriptions import noop_unsubscribe, typed_callback
from collab_core.interactors.group_chat_interactor import GroupChatInteractor
from collab_core.interactors.request_dm_interactor import RequestDMInteractor

ACCEPT_EFFECTS = [SideEffect.CLOSE_DM, SideEffect.CHAT_ADMISSION]
DECLINE_EFFECTS = [SideEffect.CLOSE_DM]


class RequestInteractor:
    """Join-request lifecycle: pending -> accepted | declined, exactly once.

    A transition and the side effects it still owes are persisted in one
    write. The effects (closing the negotiation DM, admitting the requester
    to the project chat) are applied afterwards and each is removed from the
    request once applied; whatever fails stays recorded for the reconciler
    or for the next accept/decline call on the same request.
    """

    def __init__(
        self,
        request_gateway: RequestGateway,
        group_chats: GroupChatInteractor,
        request_dms: RequestDMInteractor,
        project_gateway: ProjectGateway,
        locks: RedisClient,
        dispatcher: EventDispatcher,
        logger: logging.Logger,
    ):
        self.request_gateway = request_gateway
        self.group_chats = group_chats
        self.request_dms = request_dms
        self.project_gateway = project_gateway
        self.locks = locks
        self.dispatcher = dispatcher
        self.logger = logger

    async def create_request(self, request: schemas.RequestCreate) -> schemas.OperationResult:
        project_key = request.project_id or request.project_name
        try:
            async with self.locks.lock(
                f"request-key:{request.from_user_id}:{request.to_user_id}:{project_key}"
            ):
                existing = await self.request_gateway.find_pending(
                    request.from_user_id,
                    request.to_user_id,
                    request.project_name,
                    request.project_id,
                )
                if existing is not None:
                    self.logger.info(f"Request already exists: {existing.id}")
                    return schemas.OperationResult.ok(existing.id, created=False)
                request_id = await self.request_gateway.create_request(request)
        except CollabError as e:
            self.logger.error(f"Error creating project request: {e!s}")
            return schemas.OperationResult.fail(e)
        self.logger.info(
            f"User {request.from_user_id} requested to join {request.project_name} ({request_id})"
        )
        return schemas.OperationResult.ok(request_id, created=True)

    async def accept_request(self, request_id: str) -> schemas.OperationResult:
        return await self._resolve(request_id, RequestStatus.ACCEPTED, ACCEPT_EFFECTS)

    async def decline_request(self, request_id: str) -> schemas.OperationResult:
        return await self._resolve(request_id, RequestStatus.DECLINED, DECLINE_EFFECTS)

    async def _resolve(
        self, request_id: str, target: RequestStatus, effects: List[SideEffect]
    ) -> schemas.OperationResult:
        try:
            request, changed = await self._transition(request_id, target, effects)
        except CollabError as e:
            self.logger.error(f"Error moving request {request_id} to {target.value}: {e!s}")
            return schemas.OperationResult.fail(e)

        if changed:
            self.logger.info(f"Request {request_id} {target.value}")
            await self.dispatcher.dispatch(
                RequestStatusChanged(
                    request_id=request.id,
                    requester_id=request.from_user_id,
                    recipient_id=request.to_user_id,
                    project_name=request.project_name,
                    status=request.status.value,
                    updated_at=request.updated_at,
                )
            )

        outstanding, group_chat_id = await self._apply_side_effects(request)
        return schemas.OperationResult.ok(
            request_id,
            status=request.status.value,
            changed=changed,
            group_chat_id=group_chat_id,
            pending_side_effects=[effect.value for effect in outstanding],
        )

    async def _transition(
        self, request_id: str, target: RequestStatus, effects: List[SideEffect]
    ) -> tuple[schemas.JoinRequest, bool]:
        async with self.locks.lock(f"request:{request_id}"):
            request = await self._load(request_id)
            if request.status == target:
                return request, False
            if request.status.is_terminal:
                raise InvalidTransition(request_id, request.status.value, target.value)
            await self.request_gateway.set_status(request_id, target, effects)
            return await self._load(request_id), True

    async def _load(self, request_id: str) -> schemas.JoinRequest:
        document = await self.request_gateway.get_request(request_id)
        return schemas.parse(schemas.JoinRequest, document)

    async def _apply_side_effects(
        self, request: schemas.JoinRequest
    ) -> tuple[List[SideEffect], Optional[str]]:
        outstanding: List[SideEffect] = []
        group_chat_id = request.group_chat_id
        for effect in request.pending_side_effects:
            try:
                if effect == SideEffect.CLOSE_DM:
                    await self.request_dms.close_for_request(request.id)
                    await self.request_gateway.complete_side_effect(request.id, effect)
                elif effect == SideEffect.CHAT_ADMISSION:
                    group_chat_id = await self._admit_requester(request)
                    await self.request_gateway.complete_side_effect(
                        request.id, effect, group_chat_id=group_chat_id
                    )
            except CollabError as e:
                self.logger.warning(
                    f"Side effect {effect.value} for request {request.id} failed, will retry: {e!s}"
                )
                outstanding.append(effect)
        return outstanding, group_chat_id

    async def _admit_requester(self, request: schemas.JoinRequest) -> str:
        owner = await self.project_gateway.get_owner_details(
            request.to_user_id, request.project_name
        )
        chat_id = await self.group_chats.ensure_project_chat(
            request.project_id,
            request.project_name,
            request.to_user_id,
            owner.display_name,
            owner.email,
        )
        await self.group_chats.admit_member(
            chat_id, request.from_user_id, request.from_user_name, request.from_user_email
        )
        self.logger.info(f"Added {request.from_user_id} to group chat {chat_id}")
        return chat_id

    async def reconcile_pending(self) -> int:
        """Retry the outstanding side effects of every resolved request.

        Returns the number of requests left with nothing outstanding.
        """
        seen: set[str] = set()
        reconciled = 0
        for effect in SideEffect:
            try:
                documents = await self.request_gateway.list_with_side_effect(effect)
            except CollabError as e:
                self.logger.error(f"Error listing requests pending {effect.value}: {e!s}")
                continue
            for document in documents:
                if document.id in seen:
                    continue
                seen.add(document.id)
                try:
                    request = schemas.parse(schemas.JoinRequest, document)
                except CollabError as e:
                    self.logger.error(f"Skipping request {document.id}: {e!s}")
                    continue
                if not request.status.is_terminal:
                    continue
                outstanding, _ = await self._apply_side_effects(request)
                if not outstanding:
                    reconciled += 1
        if reconciled:
            self.logger.info(f"Reconciled side effects of {reconciled} request(s)")
        return reconciled

    async def get_request(self, request_id: str) -> Optional[schemas.JoinRequest]:
        try:
            return await self._load(request_id)
        except NotFound:
            return None
        except CollabError as e:
            self.logger.error(f"Error fetching request {request_id}: {e!s}")
            return None

    async def get_incoming_requests(self, user_id: str) -> List[schemas.JoinRequest]:
        try:
            documents = await self.request_gateway.list_incoming(user_id)
            return [schemas.parse(schemas.JoinRequest, d) for d in documents]
        except CollabError as e:
            self.logger.error(f"Error fetching user requests: {e!s}")
            return []

    async def get_sent_requests(self, user_id: str) -> List[schemas.JoinRequest]:
        try:
            documents = await self.request_gateway.list_outgoing(user_id)
            return [schemas.parse(schemas.JoinRequest, d) for d in documents]
        except CollabError as e:
            self.logger.error(f"Error fetching user sent requests: {e!s}")
            return []

    async def subscribe_incoming_requests(self, user_id: str, callback) -> Unsubscribe:
        try:
            return await self.request_gateway.subscribe_incoming(
                user_id, typed_callback(schemas.JoinRequest, callback)
            )
        except CollabError as e:
            self.logger.error(f"Error in requests subscription: {e!s}")
            return noop_unsubscribe

    async def subscribe_sent_requests(self, user_id: str, callback) -> Unsubscribe:
        try:
            return await self.request_gateway.subscribe_outgoing(
                user_id, typed_callback(schemas.JoinRequest, callback)
            )
        except CollabError as e:
            self.logger.error(f"Error in sent requests subscription: {e!s}")
            return noop_unsubscribe

    @staticmethod
    def to_request_items(requests: List[schemas.JoinRequest]) -> List[schemas.RequestItem]:
        return [schemas.RequestItem.from_request(request) for request in requests]
