# collab_core/tests/integration/test_scenarios.py
import pytest

from collab_core.domain.entities import MessageType
from collab_core.infrastructure import schemas
from conftest import ALICE, BOB


def _join(project_name, message=None):
    return schemas.RequestCreate(
        from_user_id=ALICE["id"],
        from_user_name=ALICE["name"],
        from_user_email=ALICE["email"],
        to_user_id=BOB["id"],
        project_name=project_name,
        message=message,
    )


def _text(sender, text):
    return schemas.MessageCreate(sender_id=sender["id"], sender_name=sender["name"], text=text)


@pytest.mark.asyncio
async def test_join_accept_and_thank_the_owner(requests, group_chats):
    created = await requests.create_request(_join("VR Study", "I know Unity."))
    request = await requests.get_request(created.id)
    assert request.status == "pending"
    assert request.message == "I know Unity."

    accepted = await requests.accept_request(created.id)
    assert accepted.data["status"] == "accepted"

    chat_id = accepted.data["group_chat_id"]
    chat = await group_chats.get_chat(chat_id)
    assert chat.project_name == "VR Study"
    assert set(chat.members) == {ALICE["id"], BOB["id"]}
    assert chat.members[BOB["id"]].role == "owner"
    assert chat.members[ALICE["id"]].role == "member"

    bob_sees = []
    unsubscribe = await group_chats.subscribe_user_chats(BOB["id"], bob_sees.append)
    sent = await group_chats.send_message(chat_id, _text(ALICE, "Thanks!"))
    assert sent.success

    assert [c.id for c in bob_sees[-1]] == [chat_id]
    assert bob_sees[-1][0].last_message.text == "Thanks!"
    assert bob_sees[-1][0].last_message.sender_id == ALICE["id"]
    unsubscribe()


@pytest.mark.asyncio
async def test_asking_twice_leaves_one_pending_request(requests):
    first = await requests.create_request(_join("VR Study"))
    second = await requests.create_request(_join("VR Study"))

    assert second.id == first.id
    assert second.data["created"] is False
    pending = [r for r in await requests.get_sent_requests(ALICE["id"]) if r.status == "pending"]
    assert [r.id for r in pending] == [first.id]


@pytest.mark.asyncio
async def test_decline_after_negotiating_closes_dm(requests, request_dms):
    created = await requests.create_request(_join("Essay Project"))
    opened = await request_dms.create_request_dm(
        schemas.RequestDMCreate(
            request_id=created.id,
            requester_id=ALICE["id"],
            requester_name=ALICE["name"],
            requester_email=ALICE["email"],
            owner_id=BOB["id"],
            owner_name=BOB["name"],
            owner_email=BOB["email"],
            project_name="Essay Project",
        )
    )
    dm_id = opened.id

    alice_sees, bob_sees = [], []
    stop_alice = await request_dms.subscribe_user_dms(ALICE["id"], alice_sees.append)
    stop_bob = await request_dms.subscribe_user_dms(BOB["id"], bob_sees.append)
    assert [d.id for d in alice_sees[-1]] == [dm_id]
    assert [d.id for d in bob_sees[-1]] == [dm_id]

    await request_dms.send_message(dm_id, _text(ALICE, "Which essay is it?"))
    await request_dms.send_message(dm_id, _text(BOB, "The history one."))

    declined = await requests.decline_request(created.id)
    assert declined.data["status"] == "declined"

    assert (await request_dms.get_dm(dm_id)).is_active is False
    assert alice_sees[-1] == []
    assert bob_sees[-1] == []

    history = await request_dms.get_messages(dm_id)
    assert history[0].type == MessageType.SYSTEM
    assert [m.text for m in history[1:]] == ["Which essay is it?", "The history one."]
    stop_alice()
    stop_bob()
