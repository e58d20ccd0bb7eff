"""
Utility script to create database tables.

This module holds the DDL for every table used by the application and a
helper that runs it either on an existing connection (during pool start-up)
or on a fresh connection (from run.py --create-tables).
"""

import asyncio
import logging
from typing import Optional

import asyncpg
from asyncpg import Connection

from flock.config_secrets import DATABASE_URL

logger = logging.getLogger(__name__)

TABLE_DDL: dict[str, str] = {
    "users": """
        CREATE TABLE IF NOT EXISTS users (
            id UUID PRIMARY KEY,
            email TEXT UNIQUE NOT NULL,
            password_hash TEXT NOT NULL,
            name TEXT,
            created_at BIGINT NOT NULL
        );
    """,
    "profiles": """
        CREATE TABLE IF NOT EXISTS profiles (
            id UUID PRIMARY KEY,
            user_id UUID UNIQUE NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            username TEXT UNIQUE NOT NULL,
            display_name TEXT NOT NULL,
            bio TEXT,
            location TEXT,
            website TEXT,
            avatar_url TEXT,
            banner_url TEXT,
            avatar_storage_id TEXT,
            banner_storage_id TEXT,
            verified BOOLEAN NOT NULL DEFAULT FALSE,
            followers_count INTEGER NOT NULL DEFAULT 0,
            following_count INTEGER NOT NULL DEFAULT 0,
            posts_count INTEGER NOT NULL DEFAULT 0,
            created_at BIGINT NOT NULL
        );
        CREATE INDEX IF NOT EXISTS idx_profiles_created_at ON profiles(created_at DESC);
    """,
    # reply_to_id and quoted_post_id are deliberately not foreign keys:
    # replies and quotes outlive the post they point at.
    "posts": """
        CREATE TABLE IF NOT EXISTS posts (
            id UUID PRIMARY KEY,
            author_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            content TEXT NOT NULL,
            media_urls TEXT[],
            reply_to_id UUID,
            quoted_post_id UUID,
            likes_count INTEGER NOT NULL DEFAULT 0,
            reposts_count INTEGER NOT NULL DEFAULT 0,
            replies_count INTEGER NOT NULL DEFAULT 0,
            views_count INTEGER NOT NULL DEFAULT 0,
            created_at BIGINT NOT NULL,
            edited_at BIGINT
        );
        CREATE INDEX IF NOT EXISTS idx_posts_author ON posts(author_id, created_at DESC);
        CREATE INDEX IF NOT EXISTS idx_posts_created_at ON posts(created_at DESC);
        CREATE INDEX IF NOT EXISTS idx_posts_reply_to ON posts(reply_to_id, created_at DESC);
    """,
    "follows": """
        CREATE TABLE IF NOT EXISTS follows (
            id UUID PRIMARY KEY,
            follower_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            following_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            created_at BIGINT NOT NULL,
            UNIQUE(follower_id, following_id),
            CHECK (follower_id <> following_id)
        );
        CREATE INDEX IF NOT EXISTS idx_follows_follower ON follows(follower_id, created_at DESC);
        CREATE INDEX IF NOT EXISTS idx_follows_following ON follows(following_id, created_at DESC);
    """,
    "likes": """
        CREATE TABLE IF NOT EXISTS likes (
            id UUID PRIMARY KEY,
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            post_id UUID NOT NULL,
            created_at BIGINT NOT NULL,
            UNIQUE(user_id, post_id)
        );
        CREATE INDEX IF NOT EXISTS idx_likes_post ON likes(post_id, created_at DESC);
        CREATE INDEX IF NOT EXISTS idx_likes_user ON likes(user_id, created_at DESC);
    """,
    "reposts": """
        CREATE TABLE IF NOT EXISTS reposts (
            id UUID PRIMARY KEY,
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            post_id UUID NOT NULL,
            created_at BIGINT NOT NULL,
            UNIQUE(user_id, post_id)
        );
        CREATE INDEX IF NOT EXISTS idx_reposts_post ON reposts(post_id, created_at DESC);
        CREATE INDEX IF NOT EXISTS idx_reposts_user ON reposts(user_id, created_at DESC);
    """,
    "bookmarks": """
        CREATE TABLE IF NOT EXISTS bookmarks (
            id UUID PRIMARY KEY,
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            post_id UUID NOT NULL,
            created_at BIGINT NOT NULL,
            UNIQUE(user_id, post_id)
        );
        CREATE INDEX IF NOT EXISTS idx_bookmarks_user ON bookmarks(user_id, created_at DESC);
    """,
    "notifications": """
        CREATE TABLE IF NOT EXISTS notifications (
            id UUID PRIMARY KEY,
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            type TEXT NOT NULL,
            actor_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            post_id UUID,
            read BOOLEAN NOT NULL DEFAULT FALSE,
            created_at BIGINT NOT NULL
        );
        CREATE INDEX IF NOT EXISTS idx_notifications_user ON notifications(user_id, created_at DESC);
        CREATE INDEX IF NOT EXISTS idx_notifications_unread ON notifications(user_id, read, created_at DESC);
    """,
    "conversations": """
        CREATE TABLE IF NOT EXISTS conversations (
            id UUID PRIMARY KEY,
            participant1_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            participant2_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            last_message_at BIGINT NOT NULL,
            last_message_preview TEXT NOT NULL DEFAULT ''
        );
        CREATE UNIQUE INDEX IF NOT EXISTS idx_conversations_pair ON conversations(
            LEAST(participant1_id, participant2_id),
            GREATEST(participant1_id, participant2_id)
        );
        CREATE INDEX IF NOT EXISTS idx_conversations_p1 ON conversations(participant1_id, last_message_at DESC);
        CREATE INDEX IF NOT EXISTS idx_conversations_p2 ON conversations(participant2_id, last_message_at DESC);
    """,
    "messages": """
        CREATE TABLE IF NOT EXISTS messages (
            id UUID PRIMARY KEY,
            conversation_id UUID NOT NULL REFERENCES conversations(id) ON DELETE CASCADE,
            sender_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            content TEXT NOT NULL,
            read BOOLEAN NOT NULL DEFAULT FALSE,
            created_at BIGINT NOT NULL
        );
        CREATE INDEX IF NOT EXISTS idx_messages_conversation ON messages(conversation_id, created_at DESC);
    """,
}


async def create_tables(conn: Connection) -> None:
    """Run the DDL for every table on an open connection."""
    for name, ddl in TABLE_DDL.items():
        await conn.execute(ddl)
        logger.debug("Ensured %s table", name)


async def create_database_tables(connection_string: Optional[str] = None) -> None:
    """
    Create all database tables.

    Args:
        connection_string: Database connection string. If not provided,
            uses the DATABASE_URL from config_secrets.py.
    """
    conn_string = connection_string or DATABASE_URL

    logger.info("Connecting to database...")
    conn = await asyncpg.connect(conn_string)

    try:
        logger.info("Creating tables...")
        await create_tables(conn)
        logger.info("Created %d tables", len(TABLE_DDL))
    finally:
        await conn.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(create_database_tables())
