"""DevEvent application shell.

Owns the database connection for the life of the process. Page rendering
and event/booking routes live elsewhere and use the stores on ``app.state``.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from database import BookingStore, ConnectionCache, EventStore


@asynccontextmanager
async def lifespan(app: FastAPI):
    # ConfigurationError propagates and aborts startup
    cache = ConnectionCache.from_env()
    await cache.acquire()
    events = EventStore(cache)
    app.state.db = cache
    app.state.events = events
    app.state.bookings = BookingStore(cache, events=events)
    try:
        yield
    finally:
        await cache.close()


app = FastAPI(title="DevEvent", version="0.1.0", lifespan=lifespan)


@app.get("/health")
async def health(request: Request):
    return {"status": "ok", "database": request.app.state.db.state.value}
