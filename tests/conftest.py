"""Pytest configuration and shared fixtures."""

import asyncio

import pytest

from database import BookingStore, ConnectionCache, EventStore


def _event_fields(**overrides):
    fields = {
        "title": "React Summit",
        "description": "A day of talks about React.",
        "overview": "Talks, workshops and networking.",
        "image": "/images/event1.png",
        "venue": "Pier 36",
        "location": "New York, NY",
        "date": "2025-12-12",
        "time": "9:00 AM - 6:00 PM",
        "mode": "offline",
        "audience": "Frontend developers",
        "agenda": ["Keynote", "Workshops"],
        "organizer": "GitNation",
        "tags": ["react", "frontend"],
    }
    fields.update(overrides)
    return fields


@pytest.fixture
def event_fields():
    return _event_fields


@pytest.fixture
def db_url(tmp_path) -> str:
    return f"sqlite:///{tmp_path / 'events.db'}"


@pytest.fixture
def with_stores(db_url):
    """Run ``scenario(events, bookings)`` against a fresh database."""

    def run(scenario):
        async def main():
            cache = ConnectionCache(db_url)
            events = EventStore(cache)
            try:
                return await scenario(events, BookingStore(cache, events=events))
            finally:
                await cache.close()

        return asyncio.run(main())

    return run
