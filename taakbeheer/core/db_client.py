"""SQLite task tree store with transactional CRUD operations."""

import asyncio
import contextlib
import json
import logging
import re
import sqlite3
import threading
import uuid
from collections.abc import AsyncIterator, Collection, Mapping
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

import aiosqlite

from taakbeheer.core.config import settings


logger = logging.getLogger(__name__)


class DatabaseError(RuntimeError):
    """Store failure that is not attributable to the caller."""


class RecordNotFoundError(KeyError):
    """Requested record does not exist."""


class UniqueConstraintError(DatabaseError):
    """A uniqueness constraint of the store rejected the write."""


def _validate_identifier(name: str) -> None:
    """Validate that a table or column name contains only alphanumeric characters and underscores."""
    if not re.match(r"^[a-zA-Z_][a-zA-Z0-9_]*$", name):
        msg = f"Invalid identifier: {name}. Only alphanumeric characters and underscores are allowed."
        raise ValueError(msg)


def new_id() -> str:
    """Return a fresh opaque record id."""
    return uuid.uuid4().hex


def get_db_path(db_path: str | None = None) -> Path:
    """Get the resolved SQLite database file path."""
    path_str = db_path or settings.sqlite_db_path
    return Path(path_str).resolve()


def _to_sql_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict | list):
        return json.dumps(value)
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, Enum):
        return value.value
    return value


def _build_where(where: Mapping[str, Any] | None) -> tuple[str, list[Any]]:
    """Build a WHERE clause from column -> value pairs.

    Collections become `IN (...)`, None becomes `IS NULL`, everything else `=`.
    """
    if not where:
        return "", []

    conditions = []
    params: list[Any] = []
    for column, value in where.items():
        _validate_identifier(column)
        if value is None:
            conditions.append(f"{column} IS NULL")
        elif isinstance(value, Collection) and not isinstance(value, str | bytes):
            values = list(value)
            if not values:
                conditions.append("0")
                continue
            conditions.append(f"{column} IN ({', '.join('?' for _ in values)})")
            params.extend(_to_sql_value(v) for v in values)
        else:
            conditions.append(f"{column} = ?")
            params.append(_to_sql_value(value))

    return "WHERE " + " AND ".join(conditions), params


def _rows_to_dicts(cursor: aiosqlite.Cursor, rows: Collection[Any]) -> list[dict[str, Any]]:
    columns = [description[0] for description in cursor.description]
    return [dict(zip(columns, row, strict=True)) for row in rows]


class Transaction:
    """Statements executed on one connection between BEGIN IMMEDIATE and COMMIT/ROLLBACK."""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def _execute(self, query: str, params: list[Any] | tuple[Any, ...] = ()) -> aiosqlite.Cursor:
        try:
            return await self._conn.execute(query, params)
        except sqlite3.IntegrityError as e:
            if "UNIQUE constraint failed" in str(e) or "PRIMARY KEY" in str(e):
                raise UniqueConstraintError(str(e)) from e
            raise DatabaseError(f"Integrity error: {e}") from e

    async def execute_ddl(self, statement: str) -> None:
        """Run a schema statement; only called with the module-level DDL in schema.py."""
        await self._execute(statement)

    async def insert(self, *, collection: str, data: Mapping[str, Any], key: str = "id") -> dict[str, Any]:
        """Insert a record and return it as stored."""
        _validate_identifier(collection)
        columns = list(data.keys())
        for column in columns:
            _validate_identifier(column)

        query = (
            f"INSERT INTO {collection} ({', '.join(columns)}) "  # noqa: S608 - identifiers are validated
            f"VALUES ({', '.join('?' for _ in columns)})"
        )
        await self._execute(query, [_to_sql_value(data[c]) for c in columns])
        return await self.get(collection=collection, record_id=data[key], key=key)

    async def get(self, *, collection: str, record_id: str, key: str = "id") -> dict[str, Any]:
        """Fetch a single record by key, raising RecordNotFoundError if absent."""
        record = await self.find_first(collection=collection, where={key: record_id})
        if record is None:
            msg = f"Record not found in {collection}: {record_id}"
            raise RecordNotFoundError(msg)
        return record

    async def find(
        self,
        *,
        collection: str,
        where: Mapping[str, Any] | None = None,
        order_by: str = "",
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Return all records matching `where`."""
        _validate_identifier(collection)
        where_clause, params = _build_where(where)

        safe_order = ""
        if order_by:
            if re.match(r"^[A-Za-z_][A-Za-z0-9_]*(\s+(ASC|DESC))?$", order_by.strip(), re.IGNORECASE):
                safe_order = f"ORDER BY {order_by.strip()}"
            else:
                logger.warning("Invalid order_by parameter, ignoring", extra={"order_by": order_by})

        query = f"SELECT * FROM {collection} {where_clause} {safe_order}"  # noqa: S608 - identifiers are validated
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        cursor = await self._execute(query, params)
        rows = await cursor.fetchall()
        return _rows_to_dicts(cursor, rows)

    async def find_first(
        self, *, collection: str, where: Mapping[str, Any] | None = None, order_by: str = ""
    ) -> dict[str, Any] | None:
        """Return the first record matching `where`, or None."""
        records = await self.find(collection=collection, where=where, order_by=order_by, limit=1)
        return records[0] if records else None

    async def update(
        self, *, collection: str, record_id: str, data: Mapping[str, Any], key: str = "id"
    ) -> dict[str, Any]:
        """Update a record by key and return the updated record."""
        if not data:
            msg = "Empty update payload"
            raise ValueError(msg)
        changed = await self.update_where(collection=collection, where={key: record_id}, data=data)
        if changed == 0:
            msg = f"Record not found in {collection}: {record_id}"
            raise RecordNotFoundError(msg)
        new_key = data.get(key, record_id)
        return await self.get(collection=collection, record_id=new_key, key=key)

    async def update_where(self, *, collection: str, where: Mapping[str, Any], data: Mapping[str, Any]) -> int:
        """Conditionally update rows; returns the number of rows changed.

        This is the compare-and-swap primitive: put the expected current values in
        `where` and treat a zero return as a concurrent modification.
        """
        _validate_identifier(collection)
        for column in data:
            _validate_identifier(column)
        set_clause = ", ".join(f"{column} = ?" for column in data)
        where_clause, where_params = _build_where(where)

        query = f"UPDATE {collection} SET {set_clause} {where_clause}"  # noqa: S608 - identifiers are validated
        cursor = await self._execute(query, [*(_to_sql_value(v) for v in data.values()), *where_params])
        return cursor.rowcount

    async def delete(self, *, collection: str, record_id: str, key: str = "id") -> None:
        """Delete a record by key, raising RecordNotFoundError if absent."""
        deleted = await self.delete_where(collection=collection, where={key: record_id})
        if deleted == 0:
            msg = f"Record not found in {collection}: {record_id}"
            raise RecordNotFoundError(msg)

    async def delete_where(self, *, collection: str, where: Mapping[str, Any]) -> int:
        """Delete all rows matching `where`; returns the number of rows deleted."""
        _validate_identifier(collection)
        if not where:
            msg = "Refusing to delete without a condition"
            raise ValueError(msg)
        where_clause, params = _build_where(where)
        query = f"DELETE FROM {collection} {where_clause}"  # noqa: S608 - identifiers are validated
        cursor = await self._execute(query, params)
        return cursor.rowcount


_db_connections: dict[tuple[int, int, str], aiosqlite.Connection] = {}
_tx_locks: dict[tuple[int, int, str], asyncio.Lock] = {}
_db_lock = threading.Lock()


def _cache_key(db_path: str | None) -> tuple[int, int, str]:
    loop = asyncio.get_running_loop()
    return (threading.get_ident(), id(loop), str(get_db_path(db_path)))


async def get_connection(*, db_path: str | None = None) -> aiosqlite.Connection:
    """Get or create a cached connection for the current thread, loop, and db path."""
    cache_key = _cache_key(db_path)

    cached_conn = _db_connections.get(cache_key)
    if cached_conn is not None:
        return cached_conn

    path = get_db_path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    # Transactions are managed explicitly with BEGIN IMMEDIATE / COMMIT.
    conn = await aiosqlite.connect(str(path), timeout=settings.db_timeout_seconds, isolation_level=None)
    await conn.execute("PRAGMA foreign_keys = ON")
    await conn.execute("PRAGMA journal_mode = WAL")

    with _db_lock:
        existing = _db_connections.get(cache_key)
        if existing is None:
            _db_connections[cache_key] = conn
            _tx_locks[cache_key] = asyncio.Lock()
    if existing is not None:
        await conn.close()
        return existing

    logger.info("Created new SQLite connection", extra={"db_path": str(path), "thread_id": cache_key[0]})
    return conn


async def close_connection(*, db_path: str | None = None) -> None:
    """Close the cached SQLite connection for the current thread, loop, and db path."""
    cache_key = _cache_key(db_path)

    with _db_lock:
        conn = _db_connections.pop(cache_key, None)
        _tx_locks.pop(cache_key, None)

    if conn is None:
        return

    try:
        await conn.close()
        logger.info("Closed SQLite connection", extra={"db_path": cache_key[2]})
    except Exception as e:
        logger.warning("Error closing SQLite connection", extra={"error": str(e), "db_path": cache_key[2]})


@contextlib.asynccontextmanager
async def transaction(*, db_path: str | None = None) -> AsyncIterator[Transaction]:
    """Run the enclosed statements as one all-or-nothing transaction.

    Any exception raised inside the block rolls the transaction back and is re-raised.
    """
    conn = await get_connection(db_path=db_path)
    lock = _tx_locks[_cache_key(db_path)]

    try:
        await asyncio.wait_for(lock.acquire(), timeout=settings.db_timeout_seconds)
    except TimeoutError as e:
        msg = "Timed out waiting for the store"
        raise DatabaseError(msg) from e

    try:
        await conn.execute("BEGIN IMMEDIATE")
        try:
            yield Transaction(conn)
        except BaseException:
            await conn.execute("ROLLBACK")
            raise
        try:
            await conn.execute("COMMIT")
        except sqlite3.Error as e:
            # A failed COMMIT leaves the transaction open on the cached connection.
            with contextlib.suppress(sqlite3.Error):
                await conn.execute("ROLLBACK")
            raise DatabaseError(f"Commit failed: {e}") from e
    except sqlite3.OperationalError as e:
        if "no such table" in str(e):
            msg = "Store schema missing. Call init_db() first."
            raise DatabaseError(msg) from e
        raise DatabaseError(f"Transaction failed: {e}") from e
    finally:
        lock.release()


async def init_db(*, db_path: str | None = None) -> None:
    """Initialize the database schema by delegating to schema.init_db()."""
    from taakbeheer.core import schema

    await schema.init_db(db_path=db_path)


async def create_record(*, collection: str, data: dict[str, Any], key: str = "id") -> dict[str, Any]:
    """Insert a new record in its own transaction and return it."""
    async with transaction() as tx:
        record = await tx.insert(collection=collection, data=data, key=key)
    logger.info("Created record", extra={"collection": collection, "record_id": data.get(key)})
    return record


async def get_record(*, collection: str, record_id: str, key: str = "id") -> dict[str, Any]:
    """Fetch a single record by key, raising RecordNotFoundError if not found."""
    async with transaction() as tx:
        return await tx.get(collection=collection, record_id=record_id, key=key)


async def list_records(
    *,
    collection: str,
    where: Mapping[str, Any] | None = None,
    order_by: str = "",
    limit: int | None = None,
) -> list[dict[str, Any]]:
    """List records with optional filtering, ordering and limit."""
    async with transaction() as tx:
        return await tx.find(collection=collection, where=where, order_by=order_by, limit=limit)


async def get_first_record(*, collection: str, where: Mapping[str, Any]) -> dict[str, Any] | None:
    """Return the first record matching the filter, or None."""
    async with transaction() as tx:
        return await tx.find_first(collection=collection, where=where)
