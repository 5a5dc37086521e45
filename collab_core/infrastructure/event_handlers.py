# collab_core/infrastructure/event_handlers.py
import json

from collab_core.domain.events import (
    DocumentChanged,
    RequestStatusChanged,
    UnreadCountUpdated,
)


class EventHandlers:
    def __init__(self, redis_client, channel_prefix: str = "store"):
        self.redis_client = redis_client
        self.channel_prefix = channel_prefix

    def change_channel(self, collection: str) -> str:
        return f"{self.channel_prefix}:{collection}"

    async def publish_document_changed(self, event: DocumentChanged):
        await self.redis_client.publish(
            self.change_channel(event.collection), event.model_dump_json()
        )

    async def publish_request_status_changed(self, event: RequestStatusChanged):
        status_data = json.dumps(
            {
                "request_id": event.request_id,
                "status": event.status,
                "project_name": event.project_name,
                "updated_at": event.updated_at,
            },
            default=str,
        )
        for user_id in (event.recipient_id, event.requester_id):
            await self.redis_client.publish(f"requests:{user_id}", status_data)

    async def publish_unread_count_updated(self, event: UnreadCountUpdated):
        channel_name = f"chat:{event.chat_id}:unread_count:{event.user_id}"
        unread_count_data = json.dumps(
            {
                "chat_id": event.chat_id,
                "unread_count": event.unread_count,
                "user_id": event.user_id,
            }
        )
        await self.redis_client.publish(channel_name, unread_count_data)
