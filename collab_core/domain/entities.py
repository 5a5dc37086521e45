# collab_core/domain/entities.py
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class RequestStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"

    @property
    def is_terminal(self) -> bool:
        return self is not RequestStatus.PENDING


class MemberRole(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


class MessageType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    FILE = "file"
    SYSTEM = "system"


class SideEffect(str, Enum):
    CLOSE_DM = "close_dm"
    CHAT_ADMISSION = "chat_admission"


class Collections:
    REQUESTS = "project_requests"
    GROUP_CHATS = "group_chats"
    REQUEST_DMS = "request_dms"
    POSTS = "posts"
    USERS = "users"


@dataclass
class Document:
    collection: str
    id: str
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, **self.data}


@dataclass(frozen=True)
class FieldFilter:
    field: str
    op: str
    value: Any

    EQ = "=="
    ARRAY_CONTAINS = "array_contains"

    @classmethod
    def eq(cls, field: str, value: Any) -> "FieldFilter":
        return cls(field, cls.EQ, value)

    @classmethod
    def array_contains(cls, field: str, value: Any) -> "FieldFilter":
        return cls(field, cls.ARRAY_CONTAINS, value)


@dataclass(frozen=True)
class OrderBy:
    field: str
    descending: bool = False


@dataclass(frozen=True)
class ArrayUnion:
    values: tuple


@dataclass(frozen=True)
class ArrayRemove:
    values: tuple


class _DeleteField:
    def __repr__(self) -> str:
        return "DELETE_FIELD"


DELETE_FIELD = _DeleteField()


def array_union(*values: Any) -> ArrayUnion:
    return ArrayUnion(tuple(values))


def array_remove(*values: Any) -> ArrayRemove:
    return ArrayRemove(tuple(values))
