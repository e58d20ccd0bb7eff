from uuid import uuid4

import pytest

from flock.core.exceptions import ConflictError
from flock.core.store import In, MemoryStore, Not


@pytest.fixture
def memory():
    return MemoryStore()


async def test_insert_assigns_id_and_fills_missing_columns(memory):
    row = await memory.insert("posts", {"author_id": uuid4(), "content": "hi", "created_at": 1})
    assert row["id"] is not None
    assert row["reply_to_id"] is None
    assert await memory.get("posts", row["id"]) == row


async def test_rows_are_copies(memory):
    row = await memory.insert("posts", {"author_id": uuid4(), "content": "hi", "media_urls": ["a"], "created_at": 1})
    row["media_urls"].append("b")
    stored = await memory.get("posts", row["id"])
    assert stored["media_urls"] == ["a"]


async def test_unknown_column_rejected(memory):
    with pytest.raises(ValueError):
        await memory.find("posts", {"nope": 1})


async def test_unique_edge(memory):
    user, post = uuid4(), uuid4()
    await memory.insert("likes", {"user_id": user, "post_id": post, "created_at": 1})
    with pytest.raises(ConflictError):
        await memory.insert("likes", {"user_id": user, "post_id": post, "created_at": 2})
    await memory.insert("likes", {"user_id": uuid4(), "post_id": post, "created_at": 3})
    assert await memory.count("likes", {"post_id": post}) == 2


async def test_conversation_unique_in_either_order(memory):
    a, b = uuid4(), uuid4()
    await memory.insert("conversations", {"participant1_id": a, "participant2_id": b, "last_message_at": 1})
    with pytest.raises(ConflictError):
        await memory.insert("conversations", {"participant1_id": b, "participant2_id": a, "last_message_at": 2})


async def test_find_orders_newest_first_with_bounds(memory):
    author = uuid4()
    for created_at in (10, 20, 30, 40):
        await memory.insert("posts", {"author_id": author, "content": str(created_at), "created_at": created_at})

    rows = await memory.find("posts")
    assert [row["created_at"] for row in rows] == [40, 30, 20, 10]

    rows = await memory.find("posts", before=30, limit=1)
    assert [row["created_at"] for row in rows] == [20]

    rows = await memory.find("posts", since=20, descending=False)
    assert [row["created_at"] for row in rows] == [20, 30, 40]


async def test_not_and_in_filters(memory):
    author, parent = uuid4(), uuid4()
    top = await memory.insert("posts", {"author_id": author, "content": "top", "created_at": 1})
    reply = await memory.insert(
        "posts", {"author_id": author, "content": "reply", "reply_to_id": parent, "created_at": 2}
    )

    replies = await memory.find("posts", {"reply_to_id": Not(None)})
    assert [row["id"] for row in replies] == [reply["id"]]

    both = await memory.find("posts", {"id": In([top["id"], reply["id"], uuid4()])})
    assert len(both) == 2


async def test_increment_clamps_at_zero(memory):
    row = await memory.insert("posts", {"author_id": uuid4(), "content": "x", "created_at": 1})
    assert await memory.increment("posts", row["id"], "likes_count", 1) == 1
    assert await memory.increment("posts", row["id"], "likes_count", -5) == 0
    assert await memory.increment("posts", uuid4(), "likes_count", 1) is None


async def test_update_where_and_delete_where(memory):
    user = uuid4()
    for _ in range(3):
        await memory.insert("notifications", {"user_id": user, "actor_id": uuid4(), "type": "like", "read": False, "created_at": 1})
    assert await memory.update_where("notifications", {"user_id": user, "read": False}, {"read": True}) == 3
    assert await memory.count("notifications", {"read": False}) == 0
    assert await memory.delete_where("notifications", {"user_id": user}) == 3


async def test_search_is_case_insensitive(memory):
    author = uuid4()
    await memory.insert("posts", {"author_id": author, "content": "Hello World", "created_at": 1})
    await memory.insert("posts", {"author_id": author, "content": "goodbye", "created_at": 2})
    rows = await memory.search("posts", "content", "hello")
    assert [row["content"] for row in rows] == ["Hello World"]
    assert await memory.search("posts", "content", "   ") == []
