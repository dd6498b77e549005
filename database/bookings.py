"""Booking persistence with the event existence check."""

from __future__ import annotations

import datetime as dt
import logging
import re
from collections.abc import Mapping
from typing import Any
from uuid import uuid4

import aiosqlite

from database.connection import ConnectionCache
from database.errors import DependencyError, ReferenceError, ValidationError
from database.events import EventStore
from database.models import Booking, timestamp

log = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")


def normalize_email(value: object) -> str:
    """Trim and lower-case *value*, then check it looks like an address."""
    if value is None:
        raise ValidationError("email is required", field="email")
    if not isinstance(value, str):
        raise ValidationError("invalid email address", field="email")
    email = value.strip().lower()
    if not EMAIL_PATTERN.fullmatch(email):
        raise ValidationError("invalid email address", field="email")
    return email


def _event_id(value: object) -> str:
    event_id = "" if value is None else str(value).strip()
    if not event_id:
        raise ValidationError("event_id is required", field="event_id")
    return event_id


def _from_row(row: aiosqlite.Row) -> Booking:
    return Booking.model_validate(dict(row))


class BookingStore:
    """Create and query bookings. Every write checks the event exists."""

    def __init__(self, cache: ConnectionCache, events: EventStore | None = None) -> None:
        self._cache = cache
        self._events = events or EventStore(cache)

    async def _check_event(self, event_id: str) -> None:
        try:
            found = await self._events.exists(event_id)
        except Exception as exc:
            raise DependencyError(
                f"Failed to validate event reference {event_id}", exc
            ) from exc
        if not found:
            raise ReferenceError(event_id)

    async def create(self, fields: Mapping[str, Any]) -> Booking:
        """Book ``fields["email"]`` onto ``fields["event_id"]``.

        The event reference is checked first, so an unknown event is
        reported as ReferenceError whatever the email looks like.

        Raises:
            ValidationError: event_id missing or email malformed.
            ReferenceError: No event with that id exists.
            DependencyError: The event lookup itself failed.
        """
        event_id = _event_id(fields.get("event_id"))
        await self._check_event(event_id)
        email = normalize_email(fields.get("email"))

        now = dt.datetime.now(dt.timezone.utc)
        booking = Booking(
            id=uuid4().hex,
            event_id=event_id,
            email=email,
            created_at=now,
            updated_at=now,
        )
        async with self._cache.transaction() as db:
            await db.execute(
                "INSERT INTO bookings (id, event_id, email, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (booking.id, event_id, email, timestamp(now), timestamp(now)),
            )

        log.info("Created booking %s for event %s", booking.id, event_id)
        return booking

    async def update(self, booking_id: str, changes: Mapping[str, Any]) -> Booking | None:
        """Change the event and/or email of a booking; ``None`` if missing.

        The existence check only runs when the event actually changes.
        """
        current = await self.get(booking_id)
        if current is None:
            return None

        event_id = current.event_id
        if "event_id" in changes:
            event_id = _event_id(changes["event_id"])
            if event_id != current.event_id:
                await self._check_event(event_id)
        email = current.email
        if "email" in changes:
            email = normalize_email(changes["email"])

        booking = current.model_copy(
            update={
                "event_id": event_id,
                "email": email,
                "updated_at": dt.datetime.now(dt.timezone.utc),
            }
        )
        async with self._cache.transaction() as db:
            await db.execute(
                "UPDATE bookings SET event_id = ?, email = ?, updated_at = ? WHERE id = ?",
                (event_id, email, timestamp(booking.updated_at), booking.id),
            )
        return booking

    async def get(self, booking_id: str) -> Booking | None:
        db = await self._cache.acquire()
        cursor = await db.execute("SELECT * FROM bookings WHERE id = ?", (booking_id,))
        row = await cursor.fetchone()
        return _from_row(row) if row else None

    async def find_by_event(self, event_id: str) -> list[Booking]:
        """All bookings for an event, oldest first."""
        db = await self._cache.acquire()
        cursor = await db.execute(
            "SELECT * FROM bookings WHERE event_id = ? ORDER BY created_at ASC, rowid ASC",
            (event_id,),
        )
        rows = await cursor.fetchall()
        return [_from_row(row) for row in rows]

    async def find_by_event_and_email(self, event_id: str, email: str) -> list[Booking]:
        """Bookings of one address for one event, for duplicate checks by callers."""
        db = await self._cache.acquire()
        cursor = await db.execute(
            "SELECT * FROM bookings WHERE event_id = ? AND email = ? ORDER BY created_at ASC, rowid ASC",
            (event_id, email.strip().lower()),
        )
        rows = await cursor.fetchall()
        return [_from_row(row) for row in rows]

    async def count_by_event(self, event_id: str) -> int:
        db = await self._cache.acquire()
        cursor = await db.execute(
            "SELECT COUNT(*) FROM bookings WHERE event_id = ?", (event_id,)
        )
        return (await cursor.fetchone())[0]
