"""Database connection management for DevEvent.

One ``ConnectionCache`` is owned by the application's startup routine and
handed to the stores. It keeps a single live aiosqlite connection and makes
sure concurrent first use results in exactly one connection attempt.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Mapping
from contextlib import asynccontextmanager
from enum import Enum

import aiosqlite

from database import schema
from database.config import database_url, sqlite_path
from database.errors import ConnectionError

log = logging.getLogger(__name__)

Connector = Callable[[str], Awaitable[aiosqlite.Connection]]


class ConnectionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    CONNECTING = "connecting"
    READY = "ready"
    FAILED = "failed"
    CLOSED = "closed"


async def open_sqlite(url: str) -> aiosqlite.Connection:
    """Open a connection with row factory, WAL and schema in place."""
    db = await aiosqlite.connect(sqlite_path(url))
    try:
        db.row_factory = aiosqlite.Row
        await db.execute("PRAGMA journal_mode=WAL")
        await schema.install(db)
    except BaseException:
        await db.close()
        raise
    return db


class ConnectionCache:
    """Memoized, concurrency-safe access to the database connection."""

    def __init__(self, url: str, connector: Connector | None = None) -> None:
        if connector is None:
            # fail on a malformed URL now rather than on first request
            sqlite_path(url)
            connector = open_sqlite
        self._url = url
        self._connector = connector
        self._conn: aiosqlite.Connection | None = None
        self._pending: asyncio.Task[aiosqlite.Connection] | None = None
        self._write_lock = asyncio.Lock()
        self.state = ConnectionState.UNINITIALIZED

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        connector: Connector | None = None,
    ) -> ConnectionCache:
        """Build a cache from ``DATABASE_URL``; raises ConfigurationError."""
        return cls(database_url(environ), connector=connector)

    @property
    def connection(self) -> aiosqlite.Connection:
        """The live connection. Never waits: raises if not connected yet."""
        if self._conn is None:
            raise ConnectionError(
                f"Database is not connected (state: {self.state.value})"
            )
        return self._conn

    async def acquire(self) -> aiosqlite.Connection:
        """Return the shared connection, connecting on first use.

        Callers arriving while an attempt is in flight wait on that same
        attempt and see the same outcome. A failed attempt is forgotten so
        the next call starts over.
        """
        if self._conn is not None:
            return self._conn
        if self.state is ConnectionState.CLOSED:
            raise ConnectionError("Connection cache has been closed")
        if self._pending is None:
            self.state = ConnectionState.CONNECTING
            self._pending = asyncio.ensure_future(self._establish())
        # shield: a cancelled waiter must not cancel the attempt for the others
        return await asyncio.shield(self._pending)

    async def _establish(self) -> aiosqlite.Connection:
        try:
            conn = await self._connector(self._url)
        except Exception as exc:
            self._pending = None
            self.state = ConnectionState.FAILED
            log.error("Database connection to %s failed: %s", self._url, exc)
            raise ConnectionError(f"Could not connect to database: {exc}") from exc
        self._conn = conn
        self._pending = None
        self.state = ConnectionState.READY
        log.info("Database connected: %s", self._url)
        return conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """One write unit on the shared connection: commit or roll back."""
        db = await self.acquire()
        async with self._write_lock:
            try:
                yield db
            except BaseException:
                await db.rollback()
                raise
            await db.commit()

    async def close(self) -> None:
        pending = self._pending
        if pending is not None:
            await asyncio.wait([pending])
        if self._conn is not None:
            await self._conn.close()
            self._conn = None
            log.info("Database connection closed")
        self.state = ConnectionState.CLOSED
