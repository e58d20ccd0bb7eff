from uuid import uuid4

import pytest

from flock.config_secrets import TRENDING_HASHTAGS_WINDOW_MS, TRENDING_POSTS_WINDOW_MS
from flock.core.exceptions import (
    ForbiddenError,
    InvalidArgumentError,
    NotFoundError,
    UnauthenticatedError,
)
from flock.models.models import Post
from flock.services import engagement_service, post_service, profile_service


async def _posts_count(store, user_id):
    return (await store.find_one("profiles", {"user_id": user_id}))["posts_count"]


async def test_create_post_validation(make_user):
    alice = await make_user("alice")
    with pytest.raises(UnauthenticatedError):
        await post_service.create_post(None, "hi")
    with pytest.raises(InvalidArgumentError):
        await post_service.create_post(alice, "x" * 281)
    with pytest.raises(InvalidArgumentError):
        await post_service.create_post(alice, "   ")
    with pytest.raises(InvalidArgumentError):
        await post_service.create_post(alice, "pics", media_urls=[f"https://img/{i}" for i in range(5)])
    with pytest.raises(NotFoundError):
        await post_service.create_post(alice, "reply", reply_to_id=uuid4())

    post = await post_service.create_post(alice, "x" * 280)
    assert post.author_id == alice
    media_only = await post_service.create_post(alice, "", media_urls=["https://img/1"])
    assert media_only.media_urls == ["https://img/1"]


async def test_create_post_increments_posts_count(make_user, store):
    alice = await make_user("alice")
    await post_service.create_post(alice, "one")
    await post_service.create_post(alice, "two")
    assert await _posts_count(store, alice) == 2


async def test_mention_notification_and_hashtags(make_user, store):
    alice = await make_user("alice")
    bob = await make_user("bee")
    await make_user("bee_other")

    post = await post_service.create_post(alice, "hello @Bee #fun")

    mentions = await store.find("notifications", {"user_id": bob, "type": "mention"})
    assert len(mentions) == 1
    assert mentions[0]["post_id"] == post.id
    assert mentions[0]["actor_id"] == alice

    enriched = await post_service.get_post_by_id(post.id)
    assert "fun" in enriched.hashtags
    assert enriched.mentions == ["bee"]


async def test_self_and_unknown_mentions_are_ignored(make_user, store):
    alice = await make_user("alice")
    await post_service.create_post(alice, "me @alice and @ghost")
    assert await store.count("notifications") == 0


async def test_reply_updates_parent_and_notifies(make_user, store):
    alice = await make_user("alice")
    bob = await make_user("bob")
    parent = await post_service.create_post(alice, "parent")

    reply = await post_service.create_post(bob, "reply", reply_to_id=parent.id)
    await post_service.create_post(alice, "self reply", reply_to_id=parent.id)

    assert (await store.get("posts", parent.id))["replies_count"] == 2
    notifications = await store.find("notifications", {"user_id": alice})
    assert [(n["type"], n["post_id"]) for n in notifications] == [("reply", reply.id)]

    detail = await post_service.get_post_by_id(reply.id)
    assert detail.parent_post.id == parent.id
    assert detail.parent_post.author.username == "alice"


async def test_quote_notifies_quoted_author(make_user, store):
    alice = await make_user("alice")
    bob = await make_user("bob")
    original = await post_service.create_post(alice, "original")
    quote = await post_service.create_post(bob, "look at this", quoted_post_id=original.id)

    rows = await store.find("notifications", {"user_id": alice, "type": "quote"})
    assert [row["post_id"] for row in rows] == [quote.id]

    detail = await post_service.get_post_by_id(quote.id, bob)
    assert detail.quoted_post.id == original.id
    assert detail.quoted_post.author.username == "alice"


async def test_delete_post_cascades_likes_and_reposts_only(make_user, store):
    alice = await make_user("alice")
    bob = await make_user("bob")
    post = await post_service.create_post(alice, "doomed")
    reply = await post_service.create_post(bob, "reply", reply_to_id=post.id)
    await engagement_service.like_post(bob, post.id)
    await engagement_service.repost_post(bob, post.id)
    await engagement_service.bookmark_post(bob, post.id)

    with pytest.raises(ForbiddenError):
        await post_service.delete_post(bob, post.id)

    await post_service.delete_post(alice, post.id)

    assert await store.get("posts", post.id) is None
    assert await store.find("likes", {"post_id": post.id}) == []
    assert await store.find("reposts", {"post_id": post.id}) == []
    assert len(await store.find("bookmarks", {"post_id": post.id})) == 1
    assert (await store.get("posts", reply.id))["reply_to_id"] == post.id
    assert await _posts_count(store, alice) == 0

    with pytest.raises(NotFoundError):
        await post_service.delete_post(alice, post.id)

    # Dangling references are tolerated by readers
    detail = await post_service.get_post_by_id(reply.id)
    assert detail.parent_post is None
    bookmarks = await post_service.get_user_bookmarks(bob)
    assert bookmarks.items == []


async def test_delete_post_can_cascade_bookmarks(make_user, store, monkeypatch):
    monkeypatch.setattr(post_service, "POST_DELETE_CASCADE_BOOKMARKS", True)
    alice = await make_user("alice")
    post = await post_service.create_post(alice, "doomed")
    await engagement_service.bookmark_post(alice, post.id)

    await post_service.delete_post(alice, post.id)
    assert await store.find("bookmarks", {"post_id": post.id}) == []


async def test_deleting_reply_decrements_parent_replies_count(make_user, store):
    alice = await make_user("alice")
    parent = await post_service.create_post(alice, "parent")
    reply = await post_service.create_post(alice, "reply", reply_to_id=parent.id)
    assert (await store.get("posts", parent.id))["replies_count"] == 1

    await post_service.delete_post(alice, reply.id)
    assert (await store.get("posts", parent.id))["replies_count"] == 0


async def test_record_post_view(make_user):
    alice = await make_user("alice")
    post = await post_service.create_post(alice, "viewed")
    await post_service.record_post_view(post.id)
    assert await post_service.record_post_view(post.id) == 2
    with pytest.raises(NotFoundError):
        await post_service.record_post_view(uuid4())


async def test_feed_follow_then_unfollow(make_user):
    alice = await make_user("alice")
    bob = await make_user("bob")
    carol = await make_user("carol")

    await profile_service.follow_user(alice, bob)
    bob_post = await post_service.create_post(bob, "from bob")
    own_post = await post_service.create_post(alice, "from alice")
    carol_post = await post_service.create_post(carol, "from carol")

    feed = await post_service.get_feed_posts(alice)
    ids = [post.id for post in feed.items]
    assert bob_post.id in ids and own_post.id in ids
    assert carol_post.id not in ids

    await profile_service.unfollow_user(alice, bob)
    ids = [post.id for post in (await post_service.get_feed_posts(alice)).items]
    assert bob_post.id not in ids
    assert own_post.id in ids

    anonymous = await post_service.get_feed_posts(None)
    assert len(anonymous.items) == 3


async def test_feed_cursor_advances_over_scanned_posts(make_user):
    alice = await make_user("alice")
    stranger = await make_user("stranger")
    mine = await post_service.create_post(alice, "mine")
    for i in range(3):
        await post_service.create_post(stranger, f"noise {i}")

    first = await post_service.get_feed_posts(alice, limit=2)
    assert first.items == []
    assert first.has_more is True

    second = await post_service.get_feed_posts(alice, limit=2, cursor=first.next_cursor)
    assert [post.id for post in second.items] == [mine.id]
    assert second.has_more is False


async def test_user_posts_pagination(make_user):
    alice = await make_user("alice")
    posts = [await post_service.create_post(alice, f"post {i}") for i in range(3)]

    page = await post_service.get_user_posts(alice, limit=2)
    assert [p.id for p in page.items] == [posts[2].id, posts[1].id]
    assert page.has_more is True
    assert page.next_cursor == posts[1].created_at

    page = await post_service.get_user_posts(alice, limit=2, cursor=page.next_cursor)
    assert [p.id for p in page.items] == [posts[0].id]
    assert page.has_more is False


async def test_cursor_skips_same_millisecond_sibling_at_page_boundary(make_user, store):
    # The created_at cursor is exclusive, so a row sharing the boundary
    # timestamp with the last row of a page never shows up on the next one.
    alice = await make_user("alice")
    for content, created_at in [("first", 100), ("twin a", 200), ("twin b", 200)]:
        post = Post(author_id=alice, content=content, created_at=created_at)
        await store.insert("posts", post.model_dump())

    page = await post_service.get_user_posts(alice, limit=1)
    assert [p.content for p in page.items] == ["twin b"]
    assert page.next_cursor == 200

    page = await post_service.get_user_posts(alice, limit=1, cursor=page.next_cursor)
    assert [p.content for p in page.items] == ["first"]
    assert page.has_more is False


async def test_replies_listings(make_user):
    alice = await make_user("alice")
    bob = await make_user("bob")
    parent = await post_service.create_post(alice, "parent")
    first = await post_service.create_post(bob, "first", reply_to_id=parent.id)
    await post_service.create_post(bob, "not a reply")
    second = await post_service.create_post(bob, "second", reply_to_id=parent.id)

    replies = await post_service.get_post_replies(parent.id)
    assert [p.id for p in replies.items] == [second.id, first.id]

    bob_replies = await post_service.get_user_replies(bob)
    assert [p.id for p in bob_replies.items] == [second.id, first.id]
    assert all(p.parent_post.id == parent.id for p in bob_replies.items)


async def test_liked_posts_and_bookmarks(make_user):
    alice = await make_user("alice")
    bob = await make_user("bob")
    older = await post_service.create_post(alice, "older")
    newer = await post_service.create_post(alice, "newer")

    await engagement_service.like_post(bob, newer.id)
    await engagement_service.like_post(bob, older.id)
    await engagement_service.bookmark_post(bob, newer.id)

    liked = await post_service.get_user_liked_posts(bob, viewer_id=bob)
    assert [p.id for p in liked.items] == [older.id, newer.id]
    assert all(p.liked and p.liked_at for p in liked.items)

    bookmarks = await post_service.get_user_bookmarks(bob)
    assert [p.id for p in bookmarks.items] == [newer.id]
    assert bookmarks.items[0].bookmarked is True
    assert bookmarks.items[0].bookmarked_at is not None

    assert (await post_service.get_user_bookmarks(None)).items == []


async def test_viewer_flags(make_user):
    alice = await make_user("alice")
    bob = await make_user("bob")
    post = await post_service.create_post(alice, "flag me")
    await engagement_service.like_post(bob, post.id)
    await engagement_service.repost_post(bob, post.id)

    seen_by_bob = await post_service.get_post_by_id(post.id, bob)
    assert (seen_by_bob.liked, seen_by_bob.reposted, seen_by_bob.bookmarked) == (True, True, False)
    seen_by_anonymous = await post_service.get_post_by_id(post.id)
    assert (seen_by_anonymous.liked, seen_by_anonymous.reposted) == (False, False)
    assert seen_by_anonymous.author.username == "alice"


async def test_search_posts(make_user):
    alice = await make_user("alice")
    match = await post_service.create_post(alice, "Python is fun")
    await post_service.create_post(alice, "nothing here")

    page = await post_service.search_posts("python")
    assert [p.id for p in page.items] == [match.id]
    assert (await post_service.search_posts(" ")).items == []


async def test_trending_posts(make_user, clock):
    alice = await make_user("alice")
    bob = await make_user("bob")
    carol = await make_user("carol")

    stale = await post_service.create_post(alice, "stale")
    await engagement_service.like_post(bob, stale.id)
    await engagement_service.like_post(carol, stale.id)
    clock.advance(TRENDING_POSTS_WINDOW_MS + 1)

    liked = await post_service.create_post(alice, "liked")
    reposted = await post_service.create_post(alice, "reposted")
    quiet = await post_service.create_post(alice, "quiet")
    await engagement_service.like_post(bob, liked.id)
    await engagement_service.repost_post(bob, reposted.id)

    trending = await post_service.get_trending_posts(limit=2)
    assert [p.id for p in trending] == [reposted.id, liked.id]
    all_ids = [p.id for p in await post_service.get_trending_posts()]
    assert stale.id not in all_ids and quiet.id in all_ids


async def test_trending_hashtags(make_user, clock):
    alice = await make_user("alice")
    await post_service.create_post(alice, "#old")
    clock.advance(TRENDING_HASHTAGS_WINDOW_MS + 1)

    await post_service.create_post(alice, "#python #Python #fun")
    await post_service.create_post(alice, "#python again")

    tags = await post_service.get_trending_hashtags()
    assert [(t.hashtag, t.count, t.formatted_count) for t in tags] == [("python", 2, "2"), ("fun", 1, "1")]
    assert [t.hashtag for t in await post_service.get_trending_hashtags(limit=1)] == ["python"]
