from uuid import uuid4

import pytest

from flock.core.exceptions import ConflictError, NotFoundError, UnauthenticatedError
from flock.models.models import Bookmark, Like, Repost
from flock.services import engagement_service, post_service, profile_service


@pytest.fixture
async def post_and_users(make_user):
    alice = await make_user("alice")
    bob = await make_user("bob")
    post = await post_service.create_post(alice, "like me")
    return post, alice, bob


async def _counters(store, post_id):
    row = await store.get("posts", post_id)
    return row["likes_count"], row["reposts_count"]


async def test_like_then_unlike_is_net_noop(post_and_users, store):
    post, alice, bob = post_and_users
    await engagement_service.like_post(bob, post.id)
    assert await _counters(store, post.id) == (1, 0)

    await engagement_service.unlike_post(bob, post.id)
    assert await _counters(store, post.id) == (0, 0)
    assert await store.count("likes", {"post_id": post.id}) == 0


async def test_double_like_fails_without_changing_count(post_and_users, store):
    post, alice, bob = post_and_users
    await engagement_service.like_post(bob, post.id)
    with pytest.raises(ConflictError):
        await engagement_service.like_post(bob, post.id)
    assert await _counters(store, post.id) == (1, 0)


async def test_unlike_never_liked_fails_without_changing_count(post_and_users, store):
    post, alice, bob = post_and_users
    with pytest.raises(NotFoundError):
        await engagement_service.unlike_post(bob, post.id)
    assert await _counters(store, post.id) == (0, 0)


async def test_like_notifies_author_but_not_self(post_and_users, store):
    post, alice, bob = post_and_users
    await engagement_service.like_post(alice, post.id)
    assert await store.count("notifications") == 0

    await engagement_service.like_post(bob, post.id)
    rows = await store.find("notifications", {"user_id": alice})
    assert [(row["type"], row["actor_id"], row["post_id"]) for row in rows] == [("like", bob, post.id)]


async def test_relike_within_window_refreshes_notification(post_and_users, store, clock):
    post, alice, bob = post_and_users
    await engagement_service.like_post(bob, post.id)
    first = (await store.find("notifications", {"user_id": alice}))[0]
    await store.update("notifications", first["id"], {"read": True})

    await engagement_service.unlike_post(bob, post.id)
    clock.advance(60_000)
    await engagement_service.like_post(bob, post.id)

    rows = await store.find("notifications", {"user_id": alice})
    assert len(rows) == 1
    assert rows[0]["created_at"] > first["created_at"]
    assert rows[0]["read"] is False


async def test_repost(post_and_users, store):
    post, alice, bob = post_and_users
    await engagement_service.repost_post(bob, post.id)
    with pytest.raises(ConflictError):
        await engagement_service.repost_post(bob, post.id)
    assert await _counters(store, post.id) == (0, 1)
    assert await store.count("notifications", {"user_id": alice, "type": "repost"}) == 1


async def test_bookmarks_touch_no_counters_or_notifications(post_and_users, store):
    post, alice, bob = post_and_users
    await engagement_service.bookmark_post(bob, post.id)
    with pytest.raises(ConflictError):
        await engagement_service.bookmark_post(bob, post.id)
    assert await _counters(store, post.id) == (0, 0)
    assert await store.count("notifications") == 0

    await engagement_service.unbookmark_post(bob, post.id)
    with pytest.raises(NotFoundError):
        await engagement_service.unbookmark_post(bob, post.id)


async def test_missing_post_and_anonymous_caller(post_and_users):
    post, alice, bob = post_and_users
    for action in (engagement_service.like_post, engagement_service.repost_post, engagement_service.bookmark_post):
        with pytest.raises(NotFoundError):
            await action(bob, uuid4())
        with pytest.raises(UnauthenticatedError):
            await action(None, post.id)


async def test_edge_rows_are_complete_records(post_and_users, store, clock):
    post, alice, bob = post_and_users
    await engagement_service.like_post(bob, post.id)
    await engagement_service.repost_post(bob, post.id)
    await engagement_service.bookmark_post(bob, post.id)
    await profile_service.follow_user(bob, alice)

    for table, model in (("likes", Like), ("reposts", Repost), ("bookmarks", Bookmark)):
        row = await store.find_one(table, {"user_id": bob, "post_id": post.id})
        edge = model(**row)
        assert edge.id is not None
        assert post.created_at < edge.created_at <= clock.now

    follow = await store.find_one("follows", {"follower_id": bob, "following_id": alice})
    assert follow["id"] is not None
    assert follow["created_at"] <= clock.now
