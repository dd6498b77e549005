"""DevEvent persistence layer.

Import models and stores from here::

    from database import BookingStore, ConnectionCache, EventStore
"""

from database.bookings import BookingStore, normalize_email
from database.connection import ConnectionCache, ConnectionState
from database.errors import (
    ConfigurationError,
    ConflictError,
    ConnectionError,
    DependencyError,
    ReferenceError,
    StoreError,
    ValidationError,
)
from database.events import EventStore, before_persist, normalize_date, slugify
from database.models import Booking, Event, EventFields, EventMode

__all__ = [
    # Connection
    "ConnectionCache",
    "ConnectionState",
    # Stores
    "EventStore",
    "BookingStore",
    # Entity shapes
    "Event",
    "EventFields",
    "EventMode",
    "Booking",
    # Normalizers
    "slugify",
    "normalize_date",
    "before_persist",
    "normalize_email",
    # Errors
    "StoreError",
    "ConfigurationError",
    "ConnectionError",
    "ValidationError",
    "ConflictError",
    "ReferenceError",
    "DependencyError",
]
