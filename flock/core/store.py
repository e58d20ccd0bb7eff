"""
Table-oriented persistence interface shared by every service.

Services talk to a ``Store`` in terms of tables, equality filters and a single
ordering column. ``PostgresStore`` (flock.core.db) runs these as SQL through
asyncpg; ``MemoryStore`` keeps everything in process and backs the test suite
and ``STORE_BACKEND=memory``.
"""

from __future__ import annotations

import copy
import itertools
from collections.abc import Iterable
from typing import Any
from uuid import UUID, uuid4

from flock.core.exceptions import ConflictError

Record = dict[str, Any]

TABLES: dict[str, tuple[str, ...]] = {
    "users": ("id", "email", "password_hash", "name", "created_at"),
    "profiles": (
        "id",
        "user_id",
        "username",
        "display_name",
        "bio",
        "location",
        "website",
        "avatar_url",
        "banner_url",
        "avatar_storage_id",
        "banner_storage_id",
        "verified",
        "followers_count",
        "following_count",
        "posts_count",
        "created_at",
    ),
    "posts": (
        "id",
        "author_id",
        "content",
        "media_urls",
        "reply_to_id",
        "quoted_post_id",
        "likes_count",
        "reposts_count",
        "replies_count",
        "views_count",
        "created_at",
        "edited_at",
    ),
    "follows": ("id", "follower_id", "following_id", "created_at"),
    "likes": ("id", "user_id", "post_id", "created_at"),
    "reposts": ("id", "user_id", "post_id", "created_at"),
    "bookmarks": ("id", "user_id", "post_id", "created_at"),
    "notifications": ("id", "user_id", "type", "actor_id", "post_id", "read", "created_at"),
    "conversations": ("id", "participant1_id", "participant2_id", "last_message_at", "last_message_preview"),
    "messages": ("id", "conversation_id", "sender_id", "content", "read", "created_at"),
}

UNIQUE_KEYS: dict[str, tuple[tuple[str, ...], ...]] = {
    "users": (("email",),),
    "profiles": (("user_id",), ("username",)),
    "follows": (("follower_id", "following_id"),),
    "likes": (("user_id", "post_id"),),
    "reposts": (("user_id", "post_id"),),
    "bookmarks": (("user_id", "post_id"),),
}

# Unique regardless of column order (one conversation per pair of users)
UNORDERED_UNIQUE_KEYS: dict[str, tuple[tuple[str, str], ...]] = {
    "conversations": (("participant1_id", "participant2_id"),),
}


class Not:
    """Filter value matching anything except ``value`` (``Not(None)`` is IS NOT NULL)."""

    def __init__(self, value: Any) -> None:
        self.value = value

    def __repr__(self) -> str:
        return f"Not({self.value!r})"


class In:
    """Filter value matching any of ``values``."""

    def __init__(self, values: Iterable[Any]) -> None:
        self.values = list(values)

    def __repr__(self) -> str:
        return f"In({self.values!r})"


def check_columns(table: str, columns: Iterable[str]) -> None:
    """Reject unknown tables and columns before they reach a query."""
    if table not in TABLES:
        raise ValueError(f"Unknown table: {table}")
    known = TABLES[table]
    for column in columns:
        if column not in known:
            raise ValueError(f"Unknown column {column!r} for table {table}")


class Store:
    """Interface implemented by every storage backend."""

    async def insert(self, table: str, record: Record) -> Record:
        raise NotImplementedError

    async def get(self, table: str, record_id: UUID) -> Record | None:
        raise NotImplementedError

    async def find(
        self,
        table: str,
        filters: Record | None = None,
        *,
        order_by: str = "created_at",
        descending: bool = True,
        before: int | None = None,
        since: int | None = None,
        limit: int | None = None,
    ) -> list[Record]:
        """
        Return rows matching ``filters`` sorted on ``order_by``.

        ``before`` is an exclusive upper bound and ``since`` an inclusive lower
        bound, both applied to the ``order_by`` column.
        """
        raise NotImplementedError

    async def find_one(self, table: str, filters: Record) -> Record | None:
        rows = await self.find(table, filters, limit=1, order_by="id", descending=False)
        return rows[0] if rows else None

    async def count(self, table: str, filters: Record | None = None) -> int:
        raise NotImplementedError

    async def update(self, table: str, record_id: UUID, fields: Record) -> Record | None:
        raise NotImplementedError

    async def update_where(self, table: str, filters: Record, fields: Record) -> int:
        raise NotImplementedError

    async def increment(self, table: str, record_id: UUID, column: str, delta: int) -> int | None:
        """Atomically add ``delta`` to a counter, never going below zero."""
        raise NotImplementedError

    async def delete(self, table: str, record_id: UUID) -> bool:
        raise NotImplementedError

    async def delete_where(self, table: str, filters: Record) -> int:
        raise NotImplementedError

    async def search(
        self,
        table: str,
        column: str,
        term: str,
        *,
        before: int | None = None,
        limit: int = 10,
    ) -> list[Record]:
        """Case-insensitive substring match on one text column, newest first."""
        raise NotImplementedError

    async def close(self) -> None:
        return None


def _matches(record: Record, filters: Record | None) -> bool:
    if not filters:
        return True
    for column, expected in filters.items():
        actual = record.get(column)
        if isinstance(expected, Not):
            if actual == expected.value:
                return False
        elif isinstance(expected, In):
            if actual not in expected.values:
                return False
        elif actual != expected:
            return False
    return True


class MemoryStore(Store):
    """In-process store. Every method runs without awaiting, so each call is atomic."""

    def __init__(self) -> None:
        self._tables: dict[str, dict[UUID, Record]] = {name: {} for name in TABLES}
        self._sequence = itertools.count()
        self._inserted: dict[UUID, int] = {}

    def _rows(self, table: str) -> dict[UUID, Record]:
        check_columns(table, ())
        return self._tables[table]

    def _check_unique(self, table: str, candidate: Record, exclude_id: UUID | None = None) -> None:
        rows = self._tables[table]
        for key in UNIQUE_KEYS.get(table, ()):
            values = tuple(candidate.get(column) for column in key)
            if any(value is None for value in values):
                continue
            for row_id, row in rows.items():
                if row_id != exclude_id and tuple(row.get(column) for column in key) == values:
                    raise ConflictError(f"Duplicate {table} entry for {', '.join(key)}")
        for first, second in UNORDERED_UNIQUE_KEYS.get(table, ()):
            pair = frozenset((candidate.get(first), candidate.get(second)))
            for row_id, row in rows.items():
                if row_id != exclude_id and frozenset((row.get(first), row.get(second))) == pair:
                    raise ConflictError(f"Duplicate {table} entry for {first}, {second}")

    async def insert(self, table: str, record: Record) -> Record:
        check_columns(table, record)
        row = {column: None for column in TABLES[table]}
        row.update(copy.deepcopy(record))
        if row["id"] is None:
            row["id"] = uuid4()
        self._check_unique(table, row)
        self._tables[table][row["id"]] = row
        self._inserted[row["id"]] = next(self._sequence)
        return copy.deepcopy(row)

    async def get(self, table: str, record_id: UUID) -> Record | None:
        row = self._rows(table).get(record_id)
        return copy.deepcopy(row) if row is not None else None

    async def find(
        self,
        table: str,
        filters: Record | None = None,
        *,
        order_by: str = "created_at",
        descending: bool = True,
        before: int | None = None,
        since: int | None = None,
        limit: int | None = None,
    ) -> list[Record]:
        check_columns(table, list(filters or {}) + [order_by])
        rows = [row for row in self._rows(table).values() if _matches(row, filters)]
        if before is not None:
            rows = [row for row in rows if row[order_by] is not None and row[order_by] < before]
        if since is not None:
            rows = [row for row in rows if row[order_by] is not None and row[order_by] >= since]
        if order_by == "id":
            rows.sort(key=lambda row: self._inserted[row["id"]], reverse=descending)
        else:
            rows.sort(key=lambda row: (row[order_by], self._inserted[row["id"]]), reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        return copy.deepcopy(rows)

    async def count(self, table: str, filters: Record | None = None) -> int:
        check_columns(table, filters or {})
        return sum(1 for row in self._rows(table).values() if _matches(row, filters))

    async def update(self, table: str, record_id: UUID, fields: Record) -> Record | None:
        check_columns(table, fields)
        row = self._rows(table).get(record_id)
        if row is None:
            return None
        candidate = dict(row)
        candidate.update(copy.deepcopy(fields))
        self._check_unique(table, candidate, exclude_id=record_id)
        row.update(candidate)
        return copy.deepcopy(row)

    async def update_where(self, table: str, filters: Record, fields: Record) -> int:
        check_columns(table, list(filters) + list(fields))
        updated = 0
        for row in self._rows(table).values():
            if _matches(row, filters):
                row.update(copy.deepcopy(fields))
                updated += 1
        return updated

    async def increment(self, table: str, record_id: UUID, column: str, delta: int) -> int | None:
        check_columns(table, (column,))
        row = self._rows(table).get(record_id)
        if row is None:
            return None
        row[column] = max((row[column] or 0) + delta, 0)
        return row[column]

    async def delete(self, table: str, record_id: UUID) -> bool:
        removed = self._rows(table).pop(record_id, None)
        self._inserted.pop(record_id, None)
        return removed is not None

    async def delete_where(self, table: str, filters: Record) -> int:
        check_columns(table, filters)
        rows = self._rows(table)
        doomed = [row_id for row_id, row in rows.items() if _matches(row, filters)]
        for row_id in doomed:
            del rows[row_id]
            self._inserted.pop(row_id, None)
        return len(doomed)

    async def search(
        self,
        table: str,
        column: str,
        term: str,
        *,
        before: int | None = None,
        limit: int = 10,
    ) -> list[Record]:
        check_columns(table, (column,))
        needle = term.strip().lower()
        if not needle:
            return []
        rows = await self.find(table, before=before)
        return [row for row in rows if needle in (row.get(column) or "").lower()][:limit]
