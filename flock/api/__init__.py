"""API router package for the Flock backend."""

from flock.api import auth, feed, messages, notifications, posts, profiles

__all__ = ["auth", "feed", "messages", "notifications", "posts", "profiles"]
