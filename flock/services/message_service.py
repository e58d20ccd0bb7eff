import logging
from typing import Optional
from uuid import UUID

from flock.config_secrets import (
    CONVERSATION_LIST_LIMIT,
    MESSAGE_MAX_LENGTH,
    MESSAGE_PREVIEW_LENGTH,
)
from flock.core.db import get_store
from flock.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidArgumentError,
    NotFoundError,
    require_user,
)
from flock.core.store import Not
from flock.models.models import Conversation, Message
from flock.schemas.schemas import ConversationSummary, MessagePage, MessageResponse
from flock.services.enrichment import load_profile, load_profiles, profile_to_response
from flock.utils import timeutils
from flock.utils.pagination import clamp_limit, split_page
from flock.utils.text import truncate_preview

logger = logging.getLogger(__name__)


async def _find_conversation(user_id: UUID, other_user_id: UUID) -> Optional[Conversation]:
    store = get_store()
    for first, second in ((user_id, other_user_id), (other_user_id, user_id)):
        row = await store.find_one("conversations", {"participant1_id": first, "participant2_id": second})
        if row:
            return Conversation(**row)
    return None


async def _get_conversation_for(user_id: UUID, conversation_id: UUID) -> Conversation:
    row = await get_store().get("conversations", conversation_id)
    if row is None:
        raise NotFoundError("Conversation not found")
    conversation = Conversation(**row)
    if not conversation.has_participant(user_id):
        raise ForbiddenError("Not authorized to access this conversation")
    return conversation


async def get_or_create_conversation(user_id: Optional[UUID], other_user_id: UUID) -> Conversation:
    """Return the one conversation between the two users, creating it if needed"""
    user_id = require_user(user_id)
    if user_id == other_user_id:
        raise InvalidArgumentError("Cannot create conversation with yourself")

    store = get_store()
    if await load_profile(store, other_user_id) is None:
        raise NotFoundError("User not found")

    existing = await _find_conversation(user_id, other_user_id)
    if existing:
        return existing

    conversation = Conversation(
        participant1_id=user_id,
        participant2_id=other_user_id,
        last_message_at=timeutils.now_ms(),
    )
    try:
        row = await store.insert("conversations", conversation.model_dump())
    except ConflictError:
        # Created concurrently by the other participant
        existing = await _find_conversation(user_id, other_user_id)
        if existing is None:
            raise
        return existing

    logger.info(f"Created conversation {row['id']} between {user_id} and {other_user_id}")
    return Conversation(**row)


async def send_message(user_id: Optional[UUID], conversation_id: UUID, content: str) -> Message:
    user_id = require_user(user_id)
    content = content.strip()
    if not content:
        raise InvalidArgumentError("Message content cannot be empty")
    if len(content) > MESSAGE_MAX_LENGTH:
        raise InvalidArgumentError("Message is too long")

    conversation = await _get_conversation_for(user_id, conversation_id)

    store = get_store()
    message = Message(
        conversation_id=conversation.id,
        sender_id=user_id,
        content=content,
        created_at=timeutils.now_ms(),
    )
    row = await store.insert("messages", message.model_dump())
    await store.update(
        "conversations",
        conversation.id,
        {
            "last_message_at": message.created_at,
            "last_message_preview": truncate_preview(content, MESSAGE_PREVIEW_LENGTH),
        },
    )
    return Message(**row)


async def get_messages(
    user_id: Optional[UUID],
    conversation_id: UUID,
    limit: Optional[int] = None,
    cursor: Optional[int] = None,
) -> MessagePage:
    """
    One page of a conversation, oldest message first.

    Pages walk backwards in time: next_cursor is the created_at of the oldest
    message on the page.
    """
    if user_id is None:
        return MessagePage()

    await _get_conversation_for(user_id, conversation_id)

    store = get_store()
    limit = clamp_limit(limit, 50)
    rows = await store.find("messages", {"conversation_id": conversation_id}, before=cursor, limit=limit + 1)
    rows, next_cursor, has_more = split_page(rows, limit)

    messages = [Message(**row) for row in reversed(rows)]
    senders = await load_profiles(store, [message.sender_id for message in messages])
    views = {sender_id: profile_to_response(profile) for sender_id, profile in senders.items()}

    items = [
        MessageResponse(
            **message.model_dump(),
            sender=views.get(message.sender_id),
            is_own=message.sender_id == user_id,
        )
        for message in messages
    ]
    return MessagePage(items=items, next_cursor=next_cursor, has_more=has_more)


async def mark_messages_as_read(user_id: Optional[UUID], conversation_id: UUID) -> int:
    """Mark the other participant's unread messages as read; returns how many changed"""
    user_id = require_user(user_id)
    await _get_conversation_for(user_id, conversation_id)
    return await get_store().update_where(
        "messages",
        {"conversation_id": conversation_id, "sender_id": Not(user_id), "read": False},
        {"read": True},
    )


async def get_user_conversations(user_id: Optional[UUID]) -> list[ConversationSummary]:
    """The caller's most recently active conversations with the other user and an unread count"""
    if user_id is None:
        return []

    store = get_store()
    rows = []
    for column in ("participant1_id", "participant2_id"):
        rows += await store.find(
            "conversations",
            {column: user_id},
            order_by="last_message_at",
            limit=CONVERSATION_LIST_LIMIT,
        )
    conversations = sorted((Conversation(**row) for row in rows), key=lambda c: c.last_message_at, reverse=True)
    conversations = conversations[:CONVERSATION_LIST_LIMIT]

    others = await load_profiles(store, [c.other_participant(user_id) for c in conversations])
    summaries = []
    for conversation in conversations:
        other = others.get(conversation.other_participant(user_id))
        unread = await store.count(
            "messages",
            {"conversation_id": conversation.id, "sender_id": Not(user_id), "read": False},
        )
        summaries.append(
            ConversationSummary(
                **conversation.model_dump(),
                other_user=profile_to_response(other) if other else None,
                unread_count=unread,
            )
        )
    return summaries


async def delete_message(user_id: Optional[UUID], message_id: UUID) -> None:
    user_id = require_user(user_id)
    store = get_store()
    row = await store.get("messages", message_id)
    if row is None:
        raise NotFoundError("Message not found")
    if row["sender_id"] != user_id:
        raise ForbiddenError("Can only delete your own messages")
    await store.delete("messages", message_id)
