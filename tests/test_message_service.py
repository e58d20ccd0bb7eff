from uuid import uuid4

import pytest

from flock.core.exceptions import (
    ForbiddenError,
    InvalidArgumentError,
    NotFoundError,
    UnauthenticatedError,
)
from flock.services import message_service


@pytest.fixture
async def users(make_user):
    return await make_user("alice"), await make_user("bob"), await make_user("carol")


async def test_conversation_unique_across_participant_order(users, store):
    alice, bob, _ = users
    first = await message_service.get_or_create_conversation(alice, bob)
    second = await message_service.get_or_create_conversation(bob, alice)
    assert first.id == second.id
    assert first.last_message_preview == ""
    assert await store.count("conversations") == 1


async def test_conversation_errors(users):
    alice, _, _ = users
    with pytest.raises(InvalidArgumentError):
        await message_service.get_or_create_conversation(alice, alice)
    with pytest.raises(NotFoundError):
        await message_service.get_or_create_conversation(alice, uuid4())
    with pytest.raises(UnauthenticatedError):
        await message_service.get_or_create_conversation(None, alice)


async def test_send_message_validation(users):
    alice, bob, carol = users
    conversation = await message_service.get_or_create_conversation(alice, bob)

    with pytest.raises(InvalidArgumentError):
        await message_service.send_message(alice, conversation.id, "   ")
    with pytest.raises(InvalidArgumentError):
        await message_service.send_message(alice, conversation.id, "x" * 1001)
    with pytest.raises(ForbiddenError):
        await message_service.send_message(carol, conversation.id, "let me in")
    with pytest.raises(NotFoundError):
        await message_service.send_message(alice, uuid4(), "hello")

    message = await message_service.send_message(alice, conversation.id, "  hi bob  ")
    assert message.content == "hi bob"


async def test_send_message_updates_preview(users, store):
    alice, bob, _ = users
    conversation = await message_service.get_or_create_conversation(alice, bob)

    message = await message_service.send_message(alice, conversation.id, "y" * 60)
    row = await store.get("conversations", conversation.id)
    assert row["last_message_preview"] == "y" * 50 + "..."
    assert row["last_message_at"] == message.created_at

    await message_service.send_message(bob, conversation.id, "short")
    row = await store.get("conversations", conversation.id)
    assert row["last_message_preview"] == "short"


async def test_get_messages_oldest_first_with_paging(users):
    alice, bob, carol = users
    conversation = await message_service.get_or_create_conversation(alice, bob)
    for i in range(3):
        await message_service.send_message(alice if i % 2 == 0 else bob, conversation.id, f"m{i}")

    page = await message_service.get_messages(alice, conversation.id, limit=2)
    assert [m.content for m in page.items] == ["m1", "m2"]
    assert [m.is_own for m in page.items] == [False, True]
    assert page.items[0].sender.username == "bob"
    assert page.has_more is True

    older = await message_service.get_messages(alice, conversation.id, limit=2, cursor=page.next_cursor)
    assert [m.content for m in older.items] == ["m0"]
    assert older.has_more is False

    assert (await message_service.get_messages(None, conversation.id)).items == []
    with pytest.raises(ForbiddenError):
        await message_service.get_messages(carol, conversation.id)


async def test_mark_messages_as_read_only_touches_incoming(users, store):
    alice, bob, _ = users
    conversation = await message_service.get_or_create_conversation(alice, bob)
    await message_service.send_message(alice, conversation.id, "from alice")
    await message_service.send_message(bob, conversation.id, "from bob 1")
    await message_service.send_message(bob, conversation.id, "from bob 2")

    assert await message_service.mark_messages_as_read(alice, conversation.id) == 2
    assert await message_service.mark_messages_as_read(alice, conversation.id) == 0
    assert await store.count("messages", {"sender_id": alice, "read": False}) == 1


async def test_user_conversations(users):
    alice, bob, carol = users
    with_bob = await message_service.get_or_create_conversation(alice, bob)
    with_carol = await message_service.get_or_create_conversation(carol, alice)
    await message_service.send_message(bob, with_bob.id, "hey")
    await message_service.send_message(bob, with_bob.id, "you there?")
    await message_service.send_message(carol, with_carol.id, "latest")

    summaries = await message_service.get_user_conversations(alice)
    assert [s.id for s in summaries] == [with_carol.id, with_bob.id]
    assert [s.other_user.username for s in summaries] == ["carol", "bob"]
    assert [s.unread_count for s in summaries] == [1, 2]

    bob_view = await message_service.get_user_conversations(bob)
    assert bob_view[0].unread_count == 0
    assert await message_service.get_user_conversations(None) == []


async def test_delete_message(users, store):
    alice, bob, _ = users
    conversation = await message_service.get_or_create_conversation(alice, bob)
    message = await message_service.send_message(alice, conversation.id, "oops")

    with pytest.raises(ForbiddenError):
        await message_service.delete_message(bob, message.id)
    await message_service.delete_message(alice, message.id)
    assert await store.get("messages", message.id) is None
    with pytest.raises(NotFoundError):
        await message_service.delete_message(alice, message.id)
