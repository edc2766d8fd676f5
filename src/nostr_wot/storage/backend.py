"""Storage backends - pluggable key/value persistence for the trust graph.

Defines the ``StorageAdapter`` protocol the graph layer talks to, plus
three implementations:

* ``MemoryStorage``   - transient dict, the default
* ``SqliteStorage``   - durable single-file store for a long-lived client
* ``PostgresStorage`` - shared durable store via asyncpg

Values are opaque strings (the graph layer stores JSON). Every operation
is a coroutine and every backend failure is raised as
:class:`~nostr_wot.core.exceptions.StorageUnavailableError`.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
import sqlite3
from typing import Any, Protocol, runtime_checkable

import asyncpg

from ..core.defaults import DEFAULT_DB_PATH, DEFAULT_TABLE_NAME
from ..core.exceptions import StorageUnavailableError, ValidationException

logger = logging.getLogger(__name__)

_TABLE_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}$")


def _check_table_name(table: str) -> str:
    if not _TABLE_NAME_RE.match(table):
        raise ValidationException(f"Invalid table name: {table!r}", "table")
    return table


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class StorageAdapter(Protocol):
    """Protocol every storage backend must implement."""

    async def get(self, key: str) -> str | None:
        """Return the value stored under *key*, or None."""
        ...

    async def set(self, key: str, value: str) -> None:
        """Store *value* under *key*, replacing any previous value."""
        ...

    async def delete(self, key: str) -> None:
        """Remove *key*; missing keys are ignored."""
        ...

    async def clear(self) -> None:
        """Remove every key."""
        ...

    async def keys(self) -> list[str]:
        """Return all stored keys."""
        ...


# ---------------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------------


class MemoryStorage:
    """Transient in-process storage."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def clear(self) -> None:
        self._data.clear()

    async def keys(self) -> list[str]:
        return list(self._data.keys())

    async def close(self) -> None:
        pass

    def __len__(self) -> int:
        return len(self._data)


# ---------------------------------------------------------------------------
# SQLite
# ---------------------------------------------------------------------------


class SqliteStorage:
    """Durable key/value store in a single SQLite file.

    sqlite3 calls run in a worker thread so the event loop never blocks;
    a lock serializes access to the shared connection.
    """

    def __init__(self, path: str | os.PathLike[str] = DEFAULT_DB_PATH, table: str = DEFAULT_TABLE_NAME):
        self.path = os.fspath(path)
        self.table = _check_table_name(table)
        self._conn: sqlite3.Connection | None = None
        self._lock = asyncio.Lock()

    def _open(self) -> sqlite3.Connection:
        if self._conn is None:
            if self.path != ":memory:":
                directory = os.path.dirname(os.path.abspath(self.path))
                os.makedirs(directory, exist_ok=True)
            conn = sqlite3.connect(self.path, check_same_thread=False)
            conn.execute(f"CREATE TABLE IF NOT EXISTS {self.table} (key TEXT PRIMARY KEY, value TEXT NOT NULL)")
            conn.commit()
            self._conn = conn
            logger.debug(f"Opened sqlite storage at {self.path}")
        return self._conn

    async def _run(self, operation: str, fn: Any) -> Any:
        async with self._lock:
            try:
                return await asyncio.to_thread(lambda: fn(self._open()))
            except (sqlite3.Error, OSError) as e:
                raise StorageUnavailableError(operation, f"SQLite {operation} failed: {e}") from e

    async def get(self, key: str) -> str | None:
        def _get(conn: sqlite3.Connection) -> str | None:
            row = conn.execute(f"SELECT value FROM {self.table} WHERE key = ?", (key,)).fetchone()
            return row[0] if row else None

        return await self._run("get", _get)

    async def set(self, key: str, value: str) -> None:
        def _set(conn: sqlite3.Connection) -> None:
            conn.execute(
                f"INSERT INTO {self.table} (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, value),
            )
            conn.commit()

        await self._run("set", _set)

    async def delete(self, key: str) -> None:
        def _delete(conn: sqlite3.Connection) -> None:
            conn.execute(f"DELETE FROM {self.table} WHERE key = ?", (key,))
            conn.commit()

        await self._run("delete", _delete)

    async def clear(self) -> None:
        def _clear(conn: sqlite3.Connection) -> None:
            conn.execute(f"DELETE FROM {self.table}")
            conn.commit()

        await self._run("clear", _clear)

    async def keys(self) -> list[str]:
        def _keys(conn: sqlite3.Connection) -> list[str]:
            return [row[0] for row in conn.execute(f"SELECT key FROM {self.table} ORDER BY key")]

        return await self._run("keys", _keys)

    async def close(self) -> None:
        async with self._lock:
            if self._conn is not None:
                conn, self._conn = self._conn, None
                await asyncio.to_thread(conn.close)


# ---------------------------------------------------------------------------
# PostgreSQL
# ---------------------------------------------------------------------------


class PostgresStorage:
    """Durable key/value store in a PostgreSQL table (asyncpg pool)."""

    def __init__(
        self,
        dsn: str,
        table: str = DEFAULT_TABLE_NAME,
        min_size: int = 1,
        max_size: int = 4,
    ):
        if not dsn:
            raise ValidationException("dsn is required for postgres storage", "dsn")
        self.dsn = dsn
        self.table = _check_table_name(table)
        self.min_size = min_size
        self.max_size = max_size
        self._pool: Any = None
        self._pool_lock = asyncio.Lock()

    async def _get_pool(self) -> Any:
        async with self._pool_lock:
            if self._pool is None:
                try:
                    pool = await asyncpg.create_pool(self.dsn, min_size=self.min_size, max_size=self.max_size)
                    async with pool.acquire() as conn:
                        await conn.execute(
                            f"CREATE TABLE IF NOT EXISTS {self.table} (key TEXT PRIMARY KEY, value TEXT NOT NULL)"
                        )
                except (asyncpg.PostgresError, OSError) as e:
                    raise StorageUnavailableError("open", f"PostgreSQL connection failed: {e}") from e
                self._pool = pool
                logger.info(f"Connected postgres storage (table {self.table})")
        return self._pool

    async def _run(self, operation: str, query: str, *args: Any, fetch: str = "execute") -> Any:
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                return await getattr(conn, fetch)(query, *args)
        except (asyncpg.PostgresError, OSError) as e:
            raise StorageUnavailableError(operation, f"PostgreSQL {operation} failed: {e}") from e

    async def get(self, key: str) -> str | None:
        return await self._run("get", f"SELECT value FROM {self.table} WHERE key = $1", key, fetch="fetchval")

    async def set(self, key: str, value: str) -> None:
        await self._run(
            "set",
            f"INSERT INTO {self.table} (key, value) VALUES ($1, $2) "
            "ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value",
            key,
            value,
        )

    async def delete(self, key: str) -> None:
        await self._run("delete", f"DELETE FROM {self.table} WHERE key = $1", key)

    async def clear(self) -> None:
        await self._run("clear", f"DELETE FROM {self.table}")

    async def keys(self) -> list[str]:
        rows = await self._run("keys", f"SELECT key FROM {self.table} ORDER BY key", fetch="fetch")
        return [row["key"] for row in rows]

    async def close(self) -> None:
        if self._pool is not None:
            pool, self._pool = self._pool, None
            await pool.close()
