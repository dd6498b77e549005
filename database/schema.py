"""Collections and indexes for events and bookings."""

import aiosqlite

SCHEMA = """
    CREATE TABLE IF NOT EXISTS events (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        slug TEXT NOT NULL,
        description TEXT NOT NULL,
        overview TEXT NOT NULL,
        image TEXT NOT NULL,
        venue TEXT NOT NULL,
        location TEXT NOT NULL,
        date TEXT NOT NULL,
        time TEXT NOT NULL,
        mode TEXT NOT NULL,
        audience TEXT NOT NULL,
        agenda TEXT NOT NULL,
        organizer TEXT NOT NULL,
        tags TEXT NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );

    CREATE UNIQUE INDEX IF NOT EXISTS idx_events_slug ON events(slug);
    CREATE INDEX IF NOT EXISTS idx_events_date ON events(date);
    CREATE INDEX IF NOT EXISTS idx_events_mode ON events(mode);

    -- one row per tag so membership lookups hit an index
    CREATE TABLE IF NOT EXISTS event_tags (
        event_id TEXT NOT NULL,
        tag TEXT NOT NULL,
        PRIMARY KEY (event_id, tag)
    );

    CREATE INDEX IF NOT EXISTS idx_event_tags_tag ON event_tags(tag);

    CREATE TABLE IF NOT EXISTS bookings (
        id TEXT PRIMARY KEY,
        event_id TEXT NOT NULL,
        email TEXT NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_bookings_event_id ON bookings(event_id);
    CREATE INDEX IF NOT EXISTS idx_bookings_event_email ON bookings(event_id, email);
"""


async def install(db: aiosqlite.Connection) -> None:
    """Create collections and indexes if they are missing."""
    await db.executescript(SCHEMA)
    await db.commit()
