from __future__ import annotations

from typing import Generic, Optional, TypeVar
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from flock.models.models import NotificationType

T = TypeVar("T")


# Auth Schemas
class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)
    name: Optional[str] = None


class Token(BaseModel):
    access_token: str
    token_type: str


class UserResponse(BaseModel):
    id: UUID
    email: EmailStr
    name: Optional[str] = None
    created_at: int


# Profile Schemas
class ProfileCreate(BaseModel):
    username: str
    display_name: str
    bio: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None


class ProfileUpdate(BaseModel):
    username: Optional[str] = None
    display_name: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    avatar_url: Optional[str] = None
    banner_url: Optional[str] = None
    avatar_storage_id: Optional[str] = None
    banner_storage_id: Optional[str] = None


class ProfileUpdateResponse(BaseModel):
    success: bool = True
    new_username: str


class ProfileResponse(BaseModel):
    """Profile joined with resolved image URLs and the viewer's relationship."""

    id: UUID
    user_id: UUID
    username: str
    display_name: str
    bio: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    avatar_url: Optional[str] = None
    banner_url: Optional[str] = None
    verified: bool = False
    followers_count: int
    following_count: int
    posts_count: int
    created_at: int
    email: Optional[str] = None
    is_following: Optional[bool] = None
    is_own_profile: Optional[bool] = None


class UploadUrlResponse(BaseModel):
    storage_id: str
    upload_url: str


# Post Schemas
class PostCreate(BaseModel):
    content: str
    media_urls: Optional[list[str]] = None
    reply_to_id: Optional[UUID] = None
    quoted_post_id: Optional[UUID] = None


class PostCreatedResponse(BaseModel):
    id: UUID


class EnrichedPost(BaseModel):
    """Post joined with its author, quoted/parent post and the viewer's engagement."""

    id: UUID
    author_id: UUID
    content: str
    media_urls: Optional[list[str]] = None
    reply_to_id: Optional[UUID] = None
    quoted_post_id: Optional[UUID] = None
    likes_count: int
    reposts_count: int
    replies_count: int
    views_count: int
    created_at: int
    edited_at: Optional[int] = None
    hashtags: list[str] = Field(default_factory=list)
    mentions: list[str] = Field(default_factory=list)
    author: Optional[ProfileResponse] = None
    quoted_post: Optional[EnrichedPost] = None
    parent_post: Optional[EnrichedPost] = None
    liked: bool = False
    reposted: bool = False
    bookmarked: bool = False
    liked_at: Optional[int] = None
    bookmarked_at: Optional[int] = None


class Page(BaseModel, Generic[T]):
    items: list[T] = Field(default_factory=list)
    next_cursor: Optional[int] = None
    has_more: bool = False


class PostPage(Page[EnrichedPost]):
    pass


class ProfilePage(Page[ProfileResponse]):
    pass


class TrendingHashtag(BaseModel):
    hashtag: str
    count: int
    formatted_count: str


# Notification Schemas
class EnrichedNotification(BaseModel):
    id: UUID
    user_id: UUID
    type: NotificationType
    actor_id: UUID
    post_id: Optional[UUID] = None
    read: bool
    created_at: int
    actor: Optional[ProfileResponse] = None
    post: Optional[EnrichedPost] = None


class NotificationPage(Page[EnrichedNotification]):
    pass


class NotificationSettings(BaseModel):
    follows: bool = True
    likes: bool = True
    reposts: bool = True
    replies: bool = True
    mentions: bool = True
    quotes: bool = True


class MarkedCountResponse(BaseModel):
    marked_count: int


# Message Schemas
class ConversationCreate(BaseModel):
    other_user_id: UUID


class ConversationCreatedResponse(BaseModel):
    id: UUID


class MessageCreate(BaseModel):
    content: str


class MessageResponse(BaseModel):
    id: UUID
    conversation_id: UUID
    sender_id: UUID
    content: str
    read: bool
    created_at: int
    sender: Optional[ProfileResponse] = None
    is_own: bool = False


class MessagePage(Page[MessageResponse]):
    pass


class ConversationSummary(BaseModel):
    id: UUID
    participant1_id: UUID
    participant2_id: UUID
    last_message_at: int
    last_message_preview: str
    other_user: Optional[ProfileResponse] = None
    unread_count: int = 0
