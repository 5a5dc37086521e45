# collab_core/infrastructure/schemas.py
from datetime import datetime
from enum import Enum
from typing import Any, TypeVar

from pydantic import BaseModel, Field, ValidationError

from collab_core.domain.entities import (
    Document,
    MemberRole,
    MessageType,
    RequestStatus,
    SideEffect,
)
from collab_core.domain.exceptions import (
    CollabError,
    ConversationClosed,
    InvalidTransition,
    MalformedDocument,
    NotFound,
    Unauthorized,
)


class LastMessage(BaseModel):
    text: str
    sender_id: str
    sender_name: str
    timestamp: datetime


class MessageCreate(BaseModel):
    sender_id: str
    sender_name: str
    text: str
    type: MessageType = MessageType.TEXT


class Message(BaseModel):
    id: str
    sender_id: str
    sender_name: str
    text: str
    timestamp: datetime
    type: MessageType = MessageType.TEXT
    edited: bool = False
    edited_at: datetime | None = None
    is_deleted: bool = False


class ChatMember(BaseModel):
    user_id: str
    display_name: str
    email: str = ""
    joined_at: datetime
    role: MemberRole = MemberRole.MEMBER
    last_read_message_id: str | None = None
    last_read_at: datetime | None = None


class ChatSettings(BaseModel):
    allow_invites: bool = True
    is_public: bool = False


class GroupChatCreate(BaseModel):
    project_name: str
    description: str = ""
    owner_id: str
    owner_name: str
    owner_email: str = ""
    project_id: str | None = None


class GroupChat(BaseModel):
    id: str
    project_name: str
    project_id: str | None = None
    description: str = ""
    member_ids: list[str] = Field(default_factory=list)
    members: dict[str, ChatMember] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime
    last_message: LastMessage | None = None
    is_active: bool = True
    settings: ChatSettings = Field(default_factory=ChatSettings)


class ParticipantDetail(BaseModel):
    user_id: str
    display_name: str
    email: str = ""


class ProjectContext(BaseModel):
    project_id: str | None = None
    project_name: str


class RequestDMCreate(BaseModel):
    request_id: str
    requester_id: str
    requester_name: str
    requester_email: str = ""
    owner_id: str
    owner_name: str
    owner_email: str = ""
    project_id: str | None = None
    project_name: str


class RequestDM(BaseModel):
    id: str
    request_id: str
    participants: list[str]
    participant_details: dict[str, ParticipantDetail] = Field(default_factory=dict)
    project_context: ProjectContext
    created_at: datetime
    updated_at: datetime
    last_message: LastMessage | None = None
    is_active: bool = True


class RequestCreate(BaseModel):
    from_user_id: str
    from_user_name: str
    from_user_email: str = ""
    to_user_id: str
    project_name: str
    project_id: str | None = None
    message: str | None = None


class JoinRequest(BaseModel):
    id: str
    from_user_id: str
    from_user_name: str
    from_user_email: str = ""
    to_user_id: str
    project_id: str | None = None
    project_name: str
    message: str | None = None
    status: RequestStatus = RequestStatus.PENDING
    type: str = "join_project"
    created_at: datetime
    updated_at: datetime
    has_dm: bool = False
    pending_side_effects: list[SideEffect] = Field(default_factory=list)
    group_chat_id: str | None = None


class RequestItem(BaseModel):
    """Compact view of a pending request for request lists."""

    id: str
    name: str
    project: str
    message: str | None = None
    from_user_id: str
    timestamp: datetime
    has_dm: bool = False

    @classmethod
    def from_request(cls, request: JoinRequest) -> "RequestItem":
        return cls(
            id=request.id,
            name=request.from_user_name,
            project=request.project_name,
            message=request.message,
            from_user_id=request.from_user_id,
            timestamp=request.created_at,
            has_dm=request.has_dm,
        )


class PostCreate(BaseModel):
    title: str
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    owner_id: str
    owner_name: str
    owner_email: str = ""


class ProjectPost(BaseModel):
    id: str
    title: str
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    owner_id: str
    owner_name: str = ""
    created_at: datetime
    group_chat_id: str | None = None


class OwnerDetails(BaseModel):
    display_name: str
    email: str = ""


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    STORE_UNAVAILABLE = "store_unavailable"
    UNAUTHORIZED = "unauthorized"
    INVALID_TRANSITION = "invalid_transition"
    CONVERSATION_CLOSED = "conversation_closed"

    @classmethod
    def from_exception(cls, exc: CollabError) -> "ErrorKind":
        if isinstance(exc, NotFound):
            return cls.NOT_FOUND
        if isinstance(exc, Unauthorized):
            return cls.UNAUTHORIZED
        if isinstance(exc, InvalidTransition):
            return cls.INVALID_TRANSITION
        if isinstance(exc, ConversationClosed):
            return cls.CONVERSATION_CLOSED
        return cls.STORE_UNAVAILABLE


class OperationResult(BaseModel):
    success: bool
    id: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)
    error: ErrorKind | None = None
    detail: str | None = None

    def __bool__(self) -> bool:
        return self.success

    @classmethod
    def ok(cls, id: str | None = None, **data: Any) -> "OperationResult":
        return cls(success=True, id=id, data=data)

    @classmethod
    def fail(cls, exc: CollabError) -> "OperationResult":
        return cls(success=False, error=ErrorKind.from_exception(exc), detail=str(exc))


ModelT = TypeVar("ModelT", bound=BaseModel)


def parse(schema: type[ModelT], document: Document) -> ModelT:
    """Validate a stored document, reporting bad data as a store failure."""
    try:
        return schema.model_validate(document.to_dict())
    except ValidationError as e:
        raise MalformedDocument(
            document.collection, document.id, f"{e.error_count()} invalid field(s)"
        ) from e
