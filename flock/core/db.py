from __future__ import annotations

import logging
from typing import Any, Optional
from uuid import UUID, uuid4

import asyncpg
from asyncpg import Pool

from flock.config_secrets import DATABASE_POOL_MAX_SIZE, DATABASE_POOL_MIN_SIZE, DATABASE_URL, STORE_BACKEND
from flock.core.exceptions import ConflictError
from flock.core.store import TABLES, In, MemoryStore, Not, Record, Store, check_columns

logger = logging.getLogger(__name__)

# Database connection pool
pool: Optional[Pool] = None

# Store used by every service
store: Optional[Store] = None


def _where(filters: Record | None, params: list[Any]) -> list[str]:
    """Translate equality filters into SQL conditions, appending values to params."""
    clauses = []
    for column, expected in (filters or {}).items():
        if isinstance(expected, Not):
            if expected.value is None:
                clauses.append(f"{column} IS NOT NULL")
            else:
                params.append(expected.value)
                clauses.append(f"{column} IS DISTINCT FROM ${len(params)}")
        elif isinstance(expected, In):
            params.append(expected.values)
            clauses.append(f"{column} = ANY(${len(params)})")
        elif expected is None:
            clauses.append(f"{column} IS NULL")
        else:
            params.append(expected)
            clauses.append(f"{column} = ${len(params)}")
    return clauses


class PostgresStore(Store):
    """Store backed by PostgreSQL through an asyncpg pool."""

    def __init__(self, db_pool: Pool) -> None:
        self.pool = db_pool

    async def insert(self, table: str, record: Record) -> Record:
        check_columns(table, record)
        values = dict(record)
        values.setdefault("id", uuid4())
        columns = list(values)
        placeholders = ", ".join(f"${index}" for index in range(1, len(columns) + 1))
        query = f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders}) RETURNING *"
        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(query, *values.values())
        except asyncpg.exceptions.UniqueViolationError as exc:
            raise ConflictError(f"Duplicate {table} entry") from exc
        return dict(row)

    async def get(self, table: str, record_id: UUID) -> Record | None:
        check_columns(table, ())
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(f"SELECT * FROM {table} WHERE id = $1", record_id)
        return dict(row) if row else None

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
        params: list[Any] = []
        clauses = _where(filters, params)
        if before is not None:
            params.append(before)
            clauses.append(f"{order_by} < ${len(params)}")
        if since is not None:
            params.append(since)
            clauses.append(f"{order_by} >= ${len(params)}")

        query = f"SELECT * FROM {table}"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        direction = "DESC" if descending else "ASC"
        query += f" ORDER BY {order_by} {direction}, id {direction}"
        if limit is not None:
            params.append(limit)
            query += f" LIMIT ${len(params)}"

        async with self.pool.acquire() as conn:
            rows = await conn.fetch(query, *params)
        return [dict(row) for row in rows]

    async def count(self, table: str, filters: Record | None = None) -> int:
        check_columns(table, filters or {})
        params: list[Any] = []
        clauses = _where(filters, params)
        query = f"SELECT COUNT(*) FROM {table}"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        async with self.pool.acquire() as conn:
            return await conn.fetchval(query, *params)

    async def update(self, table: str, record_id: UUID, fields: Record) -> Record | None:
        check_columns(table, fields)
        if not fields:
            return await self.get(table, record_id)
        params: list[Any] = [record_id]
        assignments = []
        for column, value in fields.items():
            params.append(value)
            assignments.append(f"{column} = ${len(params)}")
        query = f"UPDATE {table} SET {', '.join(assignments)} WHERE id = $1 RETURNING *"
        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(query, *params)
        except asyncpg.exceptions.UniqueViolationError as exc:
            raise ConflictError(f"Duplicate {table} entry") from exc
        return dict(row) if row else None

    async def update_where(self, table: str, filters: Record, fields: Record) -> int:
        check_columns(table, list(filters) + list(fields))
        params: list[Any] = []
        assignments = []
        for column, value in fields.items():
            params.append(value)
            assignments.append(f"{column} = ${len(params)}")
        clauses = _where(filters, params)
        query = f"UPDATE {table} SET {', '.join(assignments)}"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        async with self.pool.acquire() as conn:
            status = await conn.execute(query, *params)
        return int(status.split()[-1])

    async def increment(self, table: str, record_id: UUID, column: str, delta: int) -> int | None:
        check_columns(table, (column,))
        async with self.pool.acquire() as conn:
            return await conn.fetchval(
                f"UPDATE {table} SET {column} = GREATEST({column} + $2, 0) WHERE id = $1 RETURNING {column}",
                record_id,
                delta,
            )

    async def delete(self, table: str, record_id: UUID) -> bool:
        check_columns(table, ())
        async with self.pool.acquire() as conn:
            status = await conn.execute(f"DELETE FROM {table} WHERE id = $1", record_id)
        return status.endswith(" 1")

    async def delete_where(self, table: str, filters: Record) -> int:
        check_columns(table, filters)
        params: list[Any] = []
        clauses = _where(filters, params)
        query = f"DELETE FROM {table}"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        async with self.pool.acquire() as conn:
            status = await conn.execute(query, *params)
        return int(status.split()[-1])

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
        needle = term.strip()
        if not needle:
            return []
        escaped = needle.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        params: list[Any] = [f"%{escaped}%"]
        query = f"SELECT * FROM {table} WHERE {column} ILIKE $1"
        if before is not None:
            params.append(before)
            query += f" AND created_at < ${len(params)}"
        params.append(limit)
        query += f" ORDER BY created_at DESC, id DESC LIMIT ${len(params)}"
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(query, *params)
        return [dict(row) for row in rows]

    async def close(self) -> None:
        await self.pool.close()


async def init_db() -> Store:
    """Initialize the configured store (and the connection pool when using Postgres)"""
    global pool, store
    if STORE_BACKEND == "memory":
        logger.warning("Using in-memory store; data will not survive a restart")
        store = MemoryStore()
        return store

    from flock.utils.create_tables import create_tables

    pool = await asyncpg.create_pool(
        DATABASE_URL,
        min_size=DATABASE_POOL_MIN_SIZE,
        max_size=DATABASE_POOL_MAX_SIZE,
    )
    async with pool.acquire() as conn:
        await create_tables(conn)
    store = PostgresStore(pool)
    logger.info("Database pool ready (%s tables)", len(TABLES))
    return store


async def close_db():
    """Close database connection pool"""
    global pool, store
    if store is not None:
        await store.close()
    pool = None
    store = None


def get_store() -> Store:
    """Return the active store"""
    if store is None:
        raise RuntimeError("Store is not initialized; call init_db() first")
    return store


def set_store(new_store: Optional[Store]) -> None:
    """Swap the active store (used by tests and embedding applications)"""
    global store
    store = new_store
