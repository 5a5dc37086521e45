# collab_core/tests/unit/test_change_feed.py
from unittest.mock import AsyncMock

import pytest

from collab_core.domain.events import DocumentChanged
from collab_core.infrastructure.change_feed import ChangeFeedListener


@pytest.fixture
def hub():
    hub = AsyncMock()
    hub.on_document_changed = AsyncMock()
    return hub


@pytest.fixture
def listener(redis_client, hub, test_logger):
    return ChangeFeedListener(redis_client, hub, "local", test_logger, reconnect_delay=0.1)


def _message(origin, kind="pmessage"):
    event = DocumentChanged(
        collection="group_chats", document_id="c1", change="updated", origin=origin
    )
    return {
        "type": kind,
        "pattern": "store:*",
        "channel": "store:group_chats",
        "data": event.model_dump_json(),
    }


@pytest.mark.asyncio
async def test_remote_change_is_relayed(listener, hub):
    assert await listener.handle_message(_message("remote")) is True

    hub.on_document_changed.assert_called_once()
    event = hub.on_document_changed.call_args[0][0]
    assert event.collection == "group_chats"
    assert event.origin == "remote"


@pytest.mark.asyncio
async def test_own_change_is_ignored(listener, hub):
    assert await listener.handle_message(_message("local")) is False
    hub.on_document_changed.assert_not_called()


@pytest.mark.asyncio
async def test_malformed_and_control_messages_are_ignored(listener, hub, caplog):
    assert await listener.handle_message({"type": "pmessage", "data": "not json"}) is False
    assert await listener.handle_message({"type": "psubscribe", "data": 1}) is False
    hub.on_document_changed.assert_not_called()
    assert "Ignoring malformed change notification" in caplog.text


@pytest.mark.asyncio
async def test_start_and_stop(listener):
    await listener.start()
    assert listener.running
    await listener.start()
    await listener.stop()
    assert not listener.running
    await listener.stop()
