from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Query, status

from flock.core.auth import CurrentUserId, OptionalUserId
from flock.schemas.schemas import (
    ConversationCreate,
    ConversationCreatedResponse,
    ConversationSummary,
    MarkedCountResponse,
    MessageCreate,
    MessagePage,
    MessageResponse,
    ProfileResponse,
)
from flock.services import message_service, profile_service

router = APIRouter(prefix="/api/v1/messages", tags=["messages"])


@router.post("/conversations", status_code=status.HTTP_200_OK)
async def open_conversation(data: ConversationCreate, user_id: CurrentUserId) -> ConversationCreatedResponse:
    """
    Get or create the conversation with another user.

    Raises:
    - **400 Bad Request**: If other_user_id is yourself
    - **404 Not Found**: If the other user has no profile
    """
    conversation = await message_service.get_or_create_conversation(user_id, data.other_user_id)
    return ConversationCreatedResponse(id=conversation.id)


@router.get("/conversations", status_code=status.HTTP_200_OK)
async def list_conversations(user_id: OptionalUserId) -> list[ConversationSummary]:
    """Get up to 50 conversations, most recently active first, with unread counts"""
    return await message_service.get_user_conversations(user_id)


@router.get("/conversations/{conversation_id}", status_code=status.HTTP_200_OK)
async def conversation_messages(
    conversation_id: UUID,
    user_id: OptionalUserId,
    limit: int = Query(50, ge=1, le=100),
    cursor: Optional[int] = None,
) -> MessagePage:
    """
    Get messages of a conversation, oldest first within the page.

    Raises:
    - **403 Forbidden**: If you are not a participant
    - **404 Not Found**: If the conversation does not exist
    """
    return await message_service.get_messages(user_id, conversation_id, limit, cursor)


@router.post("/conversations/{conversation_id}", status_code=status.HTTP_201_CREATED)
async def send(conversation_id: UUID, message: MessageCreate, user_id: CurrentUserId) -> MessageResponse:
    """
    Send a message.

    Raises:
    - **400 Bad Request**: If content is empty or over 1000 characters
    - **403 Forbidden**: If you are not a participant
    - **404 Not Found**: If the conversation does not exist
    """
    sent = await message_service.send_message(user_id, conversation_id, message.content)
    return MessageResponse(**sent.model_dump(), is_own=True)


@router.post("/conversations/{conversation_id}/read", status_code=status.HTTP_200_OK)
async def mark_read(conversation_id: UUID, user_id: CurrentUserId) -> MarkedCountResponse:
    marked = await message_service.mark_messages_as_read(user_id, conversation_id)
    return MarkedCountResponse(marked_count=marked)


@router.delete("/{message_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_message(message_id: UUID, user_id: CurrentUserId) -> None:
    await message_service.delete_message(user_id, message_id)


@router.get("/users/search", status_code=status.HTTP_200_OK)
async def search_users(
    user_id: CurrentUserId,
    q: str = Query(..., min_length=1),
    limit: int = Query(10, ge=1, le=50),
) -> list[ProfileResponse]:
    """Find people to message; never includes yourself."""
    return await profile_service.search_profiles(q, limit, exclude_user_id=user_id)
