"""Connection configuration read from the process environment."""

from __future__ import annotations

import os
from collections.abc import Mapping

from database.errors import ConfigurationError

ENV_VAR = "DATABASE_URL"

_SCHEME = "sqlite:///"


def database_url(environ: Mapping[str, str] | None = None) -> str:
    """Return the configured connection string or fail hard."""
    env = os.environ if environ is None else environ
    url = (env.get(ENV_VAR) or "").strip()
    if not url:
        raise ConfigurationError(
            f"{ENV_VAR} environment variable is required, "
            "e.g. sqlite:///events.db"
        )
    return url


def sqlite_path(url: str) -> str:
    """Translate *url* into the path aiosqlite expects.

    ``sqlite:///events.db`` is relative, ``sqlite:////var/db/events.db`` is
    absolute. Anything without the scheme is taken as a path as-is.
    """
    if url.startswith(_SCHEME):
        path = url[len(_SCHEME):]
    elif "://" in url:
        raise ConfigurationError(f"Unsupported {ENV_VAR} scheme: {url!r}")
    else:
        path = url
    if not path:
        raise ConfigurationError(f"{ENV_VAR} does not name a database: {url!r}")
    return path
