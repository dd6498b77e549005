"""Event persistence: validation, slug/date normalization and lookups."""

from __future__ import annotations

import datetime as dt
import json
import logging
import re
from collections.abc import Collection, Mapping
from typing import Any
from uuid import uuid4

import aiosqlite
import pydantic

from database.connection import ConnectionCache
from database.errors import ConflictError, ValidationError
from database.models import (
    MODE_MESSAGE,
    Event,
    EventFields,
    EventMode,
    as_validation_error,
    timestamp,
)

log = logging.getLogger(__name__)

WRITABLE_FIELDS = frozenset(EventFields.model_fields)

_COLUMNS = (
    "id", "title", "slug", "description", "overview", "image", "venue",
    "location", "date", "time", "mode", "audience", "agenda", "organizer",
    "tags", "created_at", "updated_at",
)

# ASCII word characters only; any Unicode whitespace still becomes a hyphen
_UNSAFE_CHARS = re.compile(r"[^0-9A-Za-z_\s-]")
_WHITESPACE = re.compile(r"\s+")
_HYPHENS = re.compile(r"-+")

# Tried in order after the ISO forms.
_DATE_FORMATS = (
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%b %d, %Y",
    "%B %d, %Y",
    "%b %d %Y",
    "%B %d %Y",
    "%d %b %Y",
    "%d %B %Y",
)


def slugify(title: str) -> str:
    """Derive the URL-safe slug for *title*.

    >>> slugify("Hacktoberfest 2023!!")
    'hacktoberfest-2023'
    """
    slug = _UNSAFE_CHARS.sub("", title.lower().strip())
    slug = _WHITESPACE.sub("-", slug)
    slug = _HYPHENS.sub("-", slug)
    return slug.strip("-")


def _utc_date(value: dt.datetime) -> dt.date:
    if value.tzinfo is not None:
        value = value.astimezone(dt.timezone.utc)
    return value.date()


def normalize_date(value: str | dt.date) -> str:
    """Return *value* as a ``YYYY-MM-DD`` calendar date."""
    if isinstance(value, dt.datetime):
        return _utc_date(value).isoformat()
    if isinstance(value, dt.date):
        return value.isoformat()
    if not isinstance(value, str):
        raise ValidationError("invalid date format", field="date")

    text = value.strip()
    try:
        return dt.date.fromisoformat(text).isoformat()
    except ValueError:
        pass
    try:
        return _utc_date(dt.datetime.fromisoformat(text)).isoformat()
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return dt.datetime.strptime(text, fmt).date().isoformat()
        except ValueError:
            continue
    raise ValidationError("invalid date format", field="date")


def before_persist(event: Mapping[str, Any], changed_fields: Collection[str]) -> dict[str, Any]:
    """Normalize the derived and canonical fields of *event* before a write.

    Only fields named in *changed_fields* are touched. Returns a new dict.
    """
    doc = dict(event)
    if "title" in changed_fields:
        slug = slugify(doc["title"])
        if not slug:
            raise ValidationError(
                "title must contain at least one letter or digit", field="title"
            )
        doc["slug"] = slug
    if "date" in changed_fields:
        doc["date"] = normalize_date(doc["date"])
    if "time" in changed_fields:
        doc["time"] = str(doc["time"]).strip()
        if not doc["time"]:
            raise ValidationError("time cannot be empty", field="time")
    return doc


def _validate(fields: Mapping[str, Any]) -> dict[str, Any]:
    try:
        checked = EventFields.model_validate(dict(fields))
    except pydantic.ValidationError as exc:
        raise as_validation_error(exc) from exc
    return checked.model_dump(mode="json")


def _now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _to_params(event: Event) -> tuple:
    doc = event.model_dump(mode="json")
    doc["agenda"] = json.dumps(doc["agenda"])
    doc["tags"] = json.dumps(doc["tags"])
    doc["created_at"] = timestamp(event.created_at)
    doc["updated_at"] = timestamp(event.updated_at)
    return tuple(doc[column] for column in _COLUMNS)


def _from_row(row: aiosqlite.Row) -> Event:
    doc = dict(row)
    doc["agenda"] = json.loads(doc["agenda"])
    doc["tags"] = json.loads(doc["tags"])
    return Event.model_validate(doc)


class EventStore:
    """Create, read and update events through a ``ConnectionCache``."""

    def __init__(self, cache: ConnectionCache) -> None:
        self._cache = cache

    async def create(self, fields: Mapping[str, Any]) -> Event:
        """Validate, normalize and insert a new event.

        Raises:
            ValidationError: A field is missing, empty or malformed.
            ConflictError: Another event already has the derived slug.
        """
        doc = before_persist(_validate(fields), WRITABLE_FIELDS)
        now = _now()
        event = Event(id=uuid4().hex, created_at=now, updated_at=now, **doc)

        placeholders = ", ".join("?" for _ in _COLUMNS)
        async with self._cache.transaction() as db:
            try:
                await db.execute(
                    f"INSERT INTO events ({', '.join(_COLUMNS)}) VALUES ({placeholders})",
                    _to_params(event),
                )
            except aiosqlite.IntegrityError as exc:
                if "events.slug" not in str(exc):
                    raise
                raise ConflictError("slug", event.slug) from exc
            await self._write_tags(db, event)

        log.info("Created event %s (%s)", event.slug, event.id)
        return event

    async def update(self, event_id: str, changes: Mapping[str, Any]) -> Event | None:
        """Apply *changes* to an existing event; ``None`` if it does not exist.

        Keys other than the writable fields (``id``, ``slug``, timestamps)
        are ignored. The slug follows the title.
        """
        current = await self.get(event_id)
        if current is None:
            return None

        merged = current.model_dump(mode="json", include=set(WRITABLE_FIELDS))
        changed = {
            key for key, value in changes.items()
            if key in WRITABLE_FIELDS and merged[key] != value
        }
        merged.update({key: changes[key] for key in changed})

        doc = before_persist(_validate(merged), changed)
        doc.setdefault("slug", current.slug)
        event = Event(
            id=current.id,
            created_at=current.created_at,
            updated_at=_now(),
            **doc,
        )

        assignments = ", ".join(f"{column} = ?" for column in _COLUMNS[1:])
        async with self._cache.transaction() as db:
            try:
                await db.execute(
                    f"UPDATE events SET {assignments} WHERE id = ?",
                    _to_params(event)[1:] + (event.id,),
                )
            except aiosqlite.IntegrityError as exc:
                if "events.slug" not in str(exc):
                    raise
                raise ConflictError("slug", event.slug) from exc
            if "tags" in changed:
                await db.execute("DELETE FROM event_tags WHERE event_id = ?", (event.id,))
                await self._write_tags(db, event)

        log.info("Updated event %s (%s): %s", event.slug, event.id, sorted(changed))
        return event

    async def get(self, event_id: str) -> Event | None:
        db = await self._cache.acquire()
        cursor = await db.execute("SELECT * FROM events WHERE id = ?", (event_id,))
        row = await cursor.fetchone()
        return _from_row(row) if row else None

    async def exists(self, event_id: str) -> bool:
        db = await self._cache.acquire()
        cursor = await db.execute("SELECT 1 FROM events WHERE id = ?", (event_id,))
        return await cursor.fetchone() is not None

    async def find_by_slug(self, slug: str) -> Event | None:
        db = await self._cache.acquire()
        cursor = await db.execute(
            "SELECT * FROM events WHERE slug = ?", (slug.strip().lower(),)
        )
        row = await cursor.fetchone()
        return _from_row(row) if row else None

    async def list(
        self,
        *,
        date: str | dt.date | None = None,
        mode: str | EventMode | None = None,
        tag: str | None = None,
        limit: int | None = None,
    ) -> list[Event]:
        """List events, soonest first, optionally filtered by date, mode or tag."""
        conditions: list[str] = []
        params: list = []

        if date is not None:
            conditions.append("e.date = ?")
            params.append(normalize_date(date))
        if mode is not None:
            if isinstance(mode, EventMode):
                mode = mode.value
            try:
                params.append(EventMode(mode.strip().lower()).value)
            except ValueError:
                raise ValidationError(MODE_MESSAGE, field="mode") from None
            conditions.append("e.mode = ?")
        if tag is not None:
            conditions.append(
                "e.id IN (SELECT event_id FROM event_tags WHERE tag = ?)"
            )
            params.append(tag.strip())

        where_clause = ""
        if conditions:
            where_clause = "WHERE " + " AND ".join(conditions)

        sql = f"SELECT e.* FROM events e {where_clause} ORDER BY e.date ASC, e.created_at ASC, e.rowid ASC"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)

        db = await self._cache.acquire()
        cursor = await db.execute(sql, params)
        rows = await cursor.fetchall()
        return [_from_row(row) for row in rows]

    @staticmethod
    async def _write_tags(db: aiosqlite.Connection, event: Event) -> None:
        await db.executemany(
            "INSERT INTO event_tags (event_id, tag) VALUES (?, ?)",
            [(event.id, tag) for tag in event.tags],
        )
