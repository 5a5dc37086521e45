# collab_core/tests/unit/test_unread_count.py
from datetime import UTC, datetime, timedelta

from collab_core.infrastructure import schemas
from collab_core.interactors.unread_tracker import count_unread

T0 = datetime(2024, 5, 1, 9, 0, tzinfo=UTC)


def _chat(last_read_at=None):
    return schemas.GroupChat(
        id="c1",
        project_name="VR Study",
        member_ids=["alice", "bob"],
        members={
            "alice": schemas.ChatMember(
                user_id="alice", display_name="Alice", joined_at=T0, last_read_at=last_read_at
            ),
            "bob": schemas.ChatMember(user_id="bob", display_name="Bob", joined_at=T0),
        },
        created_at=T0,
        updated_at=T0,
    )


def _message(message_id, sender_id, minutes):
    return schemas.Message(
        id=message_id,
        sender_id=sender_id,
        sender_name=sender_id.title(),
        text="hello",
        timestamp=T0 + timedelta(minutes=minutes),
    )


MESSAGES = [
    _message("m1", "bob", 1),
    _message("m2", "alice", 2),
    _message("m3", "bob", 3),
    _message("m4", "bob", 4),
]


def test_never_read_counts_every_message():
    assert count_unread(_chat(), "alice", MESSAGES) == 4


def test_counts_only_messages_after_cursor():
    assert count_unread(_chat(last_read_at=T0 + timedelta(minutes=3)), "alice", MESSAGES) == 1


def test_own_messages_count_until_read():
    own = [_message("m2", "alice", 2)]
    assert count_unread(_chat(), "alice", own) == 1
    assert count_unread(_chat(last_read_at=T0 + timedelta(minutes=2)), "alice", own) == 0


def test_non_member_sees_everything():
    assert count_unread(_chat(), "carol", MESSAGES) == 4


def test_empty_conversation():
    assert count_unread(_chat(), "alice", []) == 0
