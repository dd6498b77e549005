"""Pydantic shapes for DevEvent entities."""

from __future__ import annotations

import datetime as dt
from enum import Enum
from typing import Annotated

import pydantic
from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator

from database.errors import ValidationError

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class EventMode(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"
    HYBRID = "hybrid"


class EventFields(BaseModel):
    """Caller-writable Event fields, checked on every persist.

    ``date`` and ``time`` are only trimmed here; their canonical form is
    produced by ``events.before_persist``.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    title: NonEmptyStr
    description: NonEmptyStr
    overview: NonEmptyStr
    image: NonEmptyStr
    venue: NonEmptyStr
    location: NonEmptyStr
    date: dt.datetime | dt.date | str
    time: str
    mode: EventMode
    audience: NonEmptyStr
    agenda: list[NonEmptyStr] = Field(min_length=1)
    organizer: NonEmptyStr
    tags: list[NonEmptyStr] = Field(min_length=1)

    @field_validator("mode", mode="before")
    @classmethod
    def _lower_mode(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("tags")
    @classmethod
    def _distinct_tags(cls, value: list[str]) -> list[str]:
        return list(dict.fromkeys(value))


class Event(BaseModel):
    """A stored event."""

    id: str
    title: str
    slug: str
    description: str
    overview: str
    image: str
    venue: str
    location: str
    date: str
    time: str
    mode: EventMode
    audience: str
    agenda: list[str]
    organizer: str
    tags: list[str]
    created_at: dt.datetime
    updated_at: dt.datetime


class Booking(BaseModel):
    """A stored reservation against an event."""

    id: str
    event_id: str
    email: str
    created_at: dt.datetime
    updated_at: dt.datetime


MODE_MESSAGE = "mode must be one of: " + ", ".join(m.value for m in EventMode)

_MESSAGES = {
    "missing": "{field} is required",
    "string_too_short": "{field} cannot be empty",
    "too_short": "{field} must contain at least one item",
    "enum": MODE_MESSAGE,
}


def as_validation_error(exc: pydantic.ValidationError) -> ValidationError:
    """Reduce a pydantic error to the first offending field."""
    err = exc.errors()[0]
    name, *rest = err["loc"]
    # keep list indices, drop union branch tags such as "constrained-str"
    field = ".".join([str(name)] + [str(part) for part in rest if isinstance(part, int)])
    if name == "date" and err["type"] != "missing":
        return ValidationError("invalid date format", field="date")
    template = _MESSAGES.get(err["type"])
    message = template.format(field=field) if template else err["msg"]
    return ValidationError(message, field=field)


def timestamp(value: dt.datetime) -> str:
    """Fixed-width ISO text so stored timestamps sort chronologically."""
    return value.astimezone(dt.timezone.utc).isoformat(timespec="microseconds")
