"""Tests for ConnectionCache and configuration."""

import asyncio
import logging

import pytest

from database import ConfigurationError, ConnectionCache, ConnectionError, ConnectionState
from database.config import sqlite_path


class FakeConnection:
    def __init__(self) -> None:
        self.closed = False

    async def close(self) -> None:
        self.closed = True


class FakeConnector:
    """Counts attempts; fails while ``error`` is set."""

    def __init__(self, error: Exception | None = None) -> None:
        self.calls = 0
        self.error = error

    async def __call__(self, url: str):
        self.calls += 1
        await asyncio.sleep(0.01)
        if self.error is not None:
            raise self.error
        return FakeConnection()


def test_concurrent_acquire_connects_once():
    connector = FakeConnector()
    cache = ConnectionCache("sqlite:///unused.db", connector=connector)

    async def scenario():
        return await asyncio.gather(*(cache.acquire() for _ in range(10)))

    results = asyncio.run(scenario())

    assert connector.calls == 1
    assert all(conn is results[0] for conn in results)
    assert cache.state is ConnectionState.READY


def test_acquire_returns_cached_connection_without_reconnecting():
    connector = FakeConnector()
    cache = ConnectionCache("sqlite:///unused.db", connector=connector)

    async def scenario():
        first = await cache.acquire()
        second = await cache.acquire()
        return first, second

    first, second = asyncio.run(scenario())

    assert first is second
    assert connector.calls == 1


def test_concurrent_failure_is_shared_and_retryable(caplog):
    connector = FakeConnector(error=OSError("connection refused"))
    cache = ConnectionCache("sqlite:///unused.db", connector=connector)

    async def scenario():
        failures = await asyncio.gather(
            *(cache.acquire() for _ in range(5)), return_exceptions=True
        )
        state_after_failure = cache.state
        connector.error = None
        conn = await cache.acquire()
        return failures, state_after_failure, conn

    with caplog.at_level(logging.INFO, logger="database.connection"):
        failures, state_after_failure, conn = asyncio.run(scenario())

    assert all(isinstance(exc, ConnectionError) for exc in failures)
    assert len({id(exc) for exc in failures}) == 1
    assert isinstance(failures[0].__cause__, OSError)
    assert state_after_failure is ConnectionState.FAILED
    assert connector.calls == 2
    assert isinstance(conn, FakeConnection)
    messages = [r.getMessage() for r in caplog.records]
    assert any("failed" in m for m in messages)
    assert any("Database connected" in m for m in messages)


def test_connection_property_does_not_wait():
    cache = ConnectionCache("sqlite:///unused.db", connector=FakeConnector())

    with pytest.raises(ConnectionError, match="not connected"):
        cache.connection


def test_close_then_acquire_fails():
    connector = FakeConnector()
    cache = ConnectionCache("sqlite:///unused.db", connector=connector)

    async def scenario():
        conn = await cache.acquire()
        await cache.close()
        with pytest.raises(ConnectionError):
            await cache.acquire()
        return conn

    conn = asyncio.run(scenario())

    assert conn.closed
    assert cache.state is ConnectionState.CLOSED


def test_from_env_requires_database_url():
    with pytest.raises(ConfigurationError, match="DATABASE_URL"):
        ConnectionCache.from_env(environ={})


def test_from_env_rejects_blank_value():
    with pytest.raises(ConfigurationError):
        ConnectionCache.from_env(environ={"DATABASE_URL": "   "})


def test_unsupported_scheme_is_a_configuration_error():
    with pytest.raises(ConfigurationError, match="scheme"):
        ConnectionCache("postgres://localhost/events")


def test_sqlite_path_forms():
    assert sqlite_path("sqlite:///events.db") == "events.db"
    assert sqlite_path("sqlite:////var/lib/events.db") == "/var/lib/events.db"
    assert sqlite_path(":memory:") == ":memory:"


def test_real_connection_installs_indexes(db_url):
    cache = ConnectionCache(db_url)

    async def scenario():
        try:
            db = await cache.acquire()
            cursor = await db.execute(
                "SELECT name FROM sqlite_master WHERE type = 'index' AND name LIKE 'idx_%'"
            )
            return {row[0] for row in await cursor.fetchall()}
        finally:
            await cache.close()

    names = asyncio.run(scenario())

    assert names == {
        "idx_events_slug",
        "idx_events_date",
        "idx_events_mode",
        "idx_event_tags_tag",
        "idx_bookings_event_id",
        "idx_bookings_event_email",
    }


def test_transaction_rolls_back_on_error(db_url):
    cache = ConnectionCache(db_url)

    async def scenario():
        try:
            with pytest.raises(RuntimeError):
                async with cache.transaction() as db:
                    await db.execute(
                        "INSERT INTO event_tags (event_id, tag) VALUES (?, ?)",
                        ("e1", "python"),
                    )
                    raise RuntimeError("boom")
            db = await cache.acquire()
            cursor = await db.execute("SELECT COUNT(*) FROM event_tags")
            return (await cursor.fetchone())[0]
        finally:
            await cache.close()

    assert asyncio.run(scenario()) == 0
