"""Error taxonomy for the DevEvent persistence layer."""

from __future__ import annotations


class StoreError(Exception):
    """Base class for everything the persistence layer raises."""


class ConfigurationError(StoreError):
    """Required configuration is missing. The process must not serve traffic."""


class ConnectionError(StoreError):  # noqa: A001
    """The database could not be reached. A later acquire() retries."""


class ValidationError(StoreError):
    """A field failed validation or normalization. Nothing was persisted."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field

    def __str__(self) -> str:
        if self.field:
            return f"{self.field}: {self.message}"
        return self.message


class ConflictError(StoreError):
    """A unique key is already taken."""

    def __init__(self, field: str, value: str) -> None:
        super().__init__(f"{field} {value!r} already exists")
        self.field = field
        self.value = value


class ReferenceError(StoreError):  # noqa: A001
    """A referenced entity does not exist."""

    def __init__(self, event_id: str) -> None:
        super().__init__(f"event does not exist: {event_id}")
        self.event_id = event_id


class DependencyError(StoreError):
    """An upstream lookup failed for a reason other than "not found"."""

    def __init__(self, message: str, cause: BaseException) -> None:
        super().__init__(f"{message}: {cause}")
        self.cause = cause
