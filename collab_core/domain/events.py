# collab_core/domain/events.py
from datetime import datetime
from typing import Literal

from pydantic import BaseModel


class Event(BaseModel):
    pass


class DocumentChanged(Event):
    collection: str
    document_id: str
    change: Literal["created", "updated", "deleted"]
    origin: str


class RequestStatusChanged(Event):
    request_id: str
    requester_id: str
    recipient_id: str
    project_name: str
    status: str
    updated_at: datetime


class UnreadCountUpdated(Event):
    chat_id: str
    user_id: str
    unread_count: int
