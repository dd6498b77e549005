"""Tests for the database admin CLI."""

import asyncio

from typer.testing import CliRunner

from database import BookingStore, ConnectionCache, EventStore
from database.__main__ import app

runner = CliRunner()


def _seed(db_url, event_fields):
    async def main():
        cache = ConnectionCache(db_url)
        events = EventStore(cache)
        try:
            react = await events.create(event_fields(title="React Summit", mode="offline"))
            await events.create(event_fields(title="JS Conference", mode="online", date="2025-11-05"))
            await BookingStore(cache, events=events).create(
                {"event_id": react.id, "email": "dev@example.com"}
            )
        finally:
            await cache.close()

    asyncio.run(main())


def test_init_creates_database(db_url, tmp_path):
    result = runner.invoke(app, ["init"], env={"DATABASE_URL": db_url})

    assert result.exit_code == 0, result.output
    assert "Database ready." in result.output
    assert (tmp_path / "events.db").exists()


def test_events_lists_and_filters(db_url, event_fields):
    _seed(db_url, event_fields)

    everything = runner.invoke(app, ["events"], env={"DATABASE_URL": db_url})
    online = runner.invoke(app, ["events", "--mode", "online"], env={"DATABASE_URL": db_url})

    assert everything.exit_code == 0, everything.output
    assert everything.output.index("js-conference") < everything.output.index("react-summit")
    assert "react-summit" not in online.output
    assert "[online] JS Conference" in online.output


def test_events_on_empty_database(db_url):
    result = runner.invoke(app, ["events"], env={"DATABASE_URL": db_url})

    assert result.exit_code == 0
    assert "No events." in result.output


def test_bookings_for_event(db_url, event_fields):
    _seed(db_url, event_fields)

    result = runner.invoke(app, ["bookings", "react-summit"], env={"DATABASE_URL": db_url})
    missing = runner.invoke(app, ["bookings", "nope"], env={"DATABASE_URL": db_url})

    assert result.exit_code == 0, result.output
    assert "1 booking(s)." in result.output
    assert "dev@example.com" in result.output
    assert missing.exit_code == 1


def test_invalid_filter_exits_with_error(db_url):
    result = runner.invoke(app, ["events", "--mode", "virtual"], env={"DATABASE_URL": db_url})

    assert result.exit_code == 1
    assert "mode must be one of" in result.output


def test_missing_configuration_exits_with_error(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)

    result = runner.invoke(app, ["init"])

    assert result.exit_code == 1
    assert "DATABASE_URL" in result.output
