from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, EmailStr, Field

from flock.utils.timeutils import now_ms


# Database models
class User(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    email: EmailStr
    password_hash: str
    name: Optional[str] = None
    created_at: int = Field(default_factory=now_ms)


class Profile(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    username: str
    display_name: str
    bio: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    avatar_url: Optional[str] = None
    banner_url: Optional[str] = None
    avatar_storage_id: Optional[str] = None
    banner_storage_id: Optional[str] = None
    verified: bool = False
    followers_count: int = 0
    following_count: int = 0
    posts_count: int = 0
    created_at: int = Field(default_factory=now_ms)


class Post(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    author_id: UUID
    content: str
    media_urls: Optional[list[str]] = None
    reply_to_id: Optional[UUID] = None  # Parent post for replies
    quoted_post_id: Optional[UUID] = None
    likes_count: int = 0
    reposts_count: int = 0
    replies_count: int = 0
    views_count: int = 0
    created_at: int = Field(default_factory=now_ms)
    edited_at: Optional[int] = None


class Follow(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    follower_id: UUID  # User who follows
    following_id: UUID  # User being followed
    created_at: int = Field(default_factory=now_ms)


class Like(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    post_id: UUID
    created_at: int = Field(default_factory=now_ms)


class Repost(Like):
    pass


class Bookmark(Like):
    pass


class NotificationType(str, Enum):
    FOLLOW = "follow"
    LIKE = "like"
    REPOST = "repost"
    REPLY = "reply"
    MENTION = "mention"
    QUOTE = "quote"


class Notification(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    user_id: UUID  # Recipient
    type: NotificationType
    actor_id: UUID  # User who triggered the notification
    post_id: Optional[UUID] = None
    read: bool = False
    created_at: int = Field(default_factory=now_ms)


class Conversation(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    participant1_id: UUID
    participant2_id: UUID
    last_message_at: int = Field(default_factory=now_ms)
    last_message_preview: str = ""

    def has_participant(self, user_id: UUID) -> bool:
        return user_id in (self.participant1_id, self.participant2_id)

    def other_participant(self, user_id: UUID) -> UUID:
        return self.participant2_id if self.participant1_id == user_id else self.participant1_id


class Message(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    conversation_id: UUID
    sender_id: UUID
    content: str
    read: bool = False
    created_at: int = Field(default_factory=now_ms)
