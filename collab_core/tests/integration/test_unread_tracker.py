# collab_core/tests/integration/test_unread_tracker.py
import pytest

from collab_core.infrastructure import schemas
from collab_core.interactors.unread_tracker import CHAT_LIST_KEY
from conftest import ALICE, BOB, CAROL


def _text(sender, text):
    return schemas.MessageCreate(sender_id=sender["id"], sender_name=sender["name"], text=text)


@pytest.fixture
async def chat_id(group_chats):
    result = await group_chats.create_group_chat(
        schemas.GroupChatCreate(project_name="VR Study", owner_id=BOB["id"], owner_name=BOB["name"])
    )
    await group_chats.add_member(result.id, ALICE["id"], ALICE["name"])
    return result.id


@pytest.fixture
async def tracker(application):
    tracker = application.unread_tracker()
    yield tracker
    tracker.unbind()
    tracker.stop()


@pytest.fixture
def unread_events(application):
    events = []

    async def record(event):
        events.append(event)

    application.event_dispatcher.register("UnreadCountUpdated", record)
    return events


@pytest.mark.asyncio
async def test_counts_messages_from_others(tracker, group_chats, chat_id, unread_events):
    await tracker.start(ALICE["id"])
    assert tracker.unread_count(chat_id) == 0

    seen = []
    for n in range(3):
        await group_chats.send_message(chat_id, _text(BOB, f"m{n}"))
        seen.append(tracker.unread_count(chat_id))

    assert seen == [1, 2, 3]
    assert tracker.total_unread == 3
    assert [e.unread_count for e in unread_events] == [0, 1, 2, 3]
    assert all(e.user_id == ALICE["id"] and e.chat_id == chat_id for e in unread_events)


@pytest.mark.asyncio
async def test_own_messages_count_until_chat_is_opened(tracker, group_chats, chat_id):
    await tracker.start(ALICE["id"])
    await group_chats.send_message(chat_id, _text(ALICE, "mine"))
    assert tracker.unread_count(chat_id) == 1

    await tracker.open_chat(chat_id)
    assert tracker.unread_count(chat_id) == 0


@pytest.mark.asyncio
async def test_opening_chat_marks_it_read(tracker, group_chats, chat_id):
    await tracker.start(ALICE["id"])
    await group_chats.send_message(chat_id, _text(BOB, "one"))
    last = await group_chats.send_message(chat_id, _text(BOB, "two"))
    assert tracker.unread_count(chat_id) == 2

    await tracker.open_chat(chat_id)

    assert tracker.unread_count(chat_id) == 0
    chat = await group_chats.get_chat(chat_id)
    assert chat.members[ALICE["id"]].last_read_message_id == last.id


@pytest.mark.asyncio
async def test_open_chat_stays_read_and_counting_resumes_after_close(
    tracker, group_chats, chat_id
):
    await tracker.start(ALICE["id"])
    await tracker.open_chat(chat_id)

    await group_chats.send_message(chat_id, _text(BOB, "while open"))
    assert tracker.unread_count(chat_id) == 0

    tracker.close_chat()
    await group_chats.send_message(chat_id, _text(BOB, "after close"))
    assert tracker.unread_count(chat_id) == 1


@pytest.mark.asyncio
async def test_open_chat_follows_newest_message_past_window(tracker, group_chats, chat_id):
    group_chats.message_window = 2
    for n in range(3):
        await group_chats.send_message(chat_id, _text(BOB, f"m{n}"))
    await tracker.start(ALICE["id"])
    assert tracker.unread_count(chat_id) == 2

    await tracker.open_chat(chat_id)
    latest = await group_chats.send_message(chat_id, _text(BOB, "latest"))

    chat = await group_chats.get_chat(chat_id)
    assert chat.members[ALICE["id"]].last_read_message_id == latest.id
    assert tracker.unread_count(chat_id) == 0


@pytest.mark.asyncio
async def test_read_cursor_survives_a_new_tracker(application, group_chats, chat_id):
    first = application.unread_tracker()
    await first.start(ALICE["id"])
    await group_chats.send_message(chat_id, _text(BOB, "seen"))
    await first.open_chat(chat_id)
    first.stop()

    await group_chats.send_message(chat_id, _text(BOB, "new"))

    second = application.unread_tracker()
    await second.start(ALICE["id"])
    assert second.unread_count(chat_id) == 1
    second.stop()


@pytest.mark.asyncio
async def test_new_chat_is_tracked(tracker, group_chats, chat_id):
    await tracker.start(ALICE["id"])
    other = await group_chats.create_group_chat(
        schemas.GroupChatCreate(project_name="Other", owner_id=CAROL["id"], owner_name="Carol")
    )
    await group_chats.add_member(other.id, ALICE["id"], ALICE["name"])
    await group_chats.send_message(other.id, _text(CAROL, "welcome"))

    assert other.id in tracker.registry
    assert tracker.unread_count(other.id) == 1
    assert tracker.total_unread == 1


@pytest.mark.asyncio
async def test_leaving_chat_cancels_its_subscription(application, tracker, group_chats, chat_id):
    await tracker.start(ALICE["id"])
    await group_chats.send_message(chat_id, _text(BOB, "hi"))
    assert chat_id in tracker.registry

    await group_chats.remove_member(chat_id, ALICE["id"])

    assert chat_id not in tracker.registry
    assert tracker.registry.keys() == {CHAT_LIST_KEY}
    assert tracker.unread_count(chat_id) == 0
    assert len(application.store.live_queries) == 1


@pytest.mark.asyncio
async def test_auth_change_drops_previous_subscriptions(
    application, tracker, auth_provider, group_chats, chat_id
):
    await tracker.bind(auth_provider)
    assert len(tracker.registry) == 0

    await auth_provider.sign_in(ALICE["id"])
    await group_chats.send_message(chat_id, _text(BOB, "for alice"))
    assert tracker.user_id == ALICE["id"]
    assert tracker.unread_count(chat_id) == 1

    await auth_provider.sign_in(CAROL["id"])
    assert tracker.user_id == CAROL["id"]
    assert tracker.registry.keys() == {CHAT_LIST_KEY}
    assert tracker.total_unread == 0

    await auth_provider.sign_out()
    assert tracker.user_id is None
    assert len(tracker.registry) == 0
    assert len(application.store.live_queries) == 0


@pytest.mark.asyncio
async def test_unbind_stops_following_auth(tracker, auth_provider):
    await tracker.bind(auth_provider)
    tracker.unbind()
    await auth_provider.sign_in(ALICE["id"])

    assert tracker.user_id is None
    assert auth_provider.listeners == []


@pytest.mark.asyncio
async def test_opening_a_chat_the_user_is_not_in_is_ignored(tracker, group_chats):
    other = await group_chats.create_group_chat(
        schemas.GroupChatCreate(project_name="Other", owner_id=CAROL["id"], owner_name="Carol")
    )
    await tracker.start(ALICE["id"])
    await tracker.open_chat(other.id)
    assert tracker.open_chat_id is None

    added = await group_chats.add_member(other.id, ALICE["id"], ALICE["name"])
    await group_chats.send_message(other.id, _text(CAROL, "welcome"))

    assert added.success
    assert tracker.unread_count(other.id) == 1
