"""CLI entry-point: python -m database [init|events|bookings]."""

from __future__ import annotations

import asyncio
import logging

import typer

from database.bookings import BookingStore
from database.connection import ConnectionCache
from database.errors import StoreError
from database.events import EventStore

app = typer.Typer(help="DevEvent – database CLI")


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v")) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _run(work) -> object:
    async def runner():
        cache = ConnectionCache.from_env()
        try:
            return await work(cache)
        finally:
            await cache.close()

    try:
        return asyncio.run(runner())
    except StoreError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(1) from exc


@app.command()
def init() -> None:
    """Connect and create collections and indexes."""

    async def work(cache: ConnectionCache) -> None:
        await cache.acquire()

    _run(work)
    typer.echo("Database ready.")


@app.command()
def events(
    mode: str | None = typer.Option(None, "--mode", "-m", help="online, offline or hybrid"),
    tag: str | None = typer.Option(None, "--tag", "-t"),
    date: str | None = typer.Option(None, "--date", "-d"),
    limit: int | None = typer.Option(None, "--limit", "-n", min=1),
) -> None:
    """List events, soonest first."""

    async def work(cache: ConnectionCache):
        return await EventStore(cache).list(date=date, mode=mode, tag=tag, limit=limit)

    found = _run(work)
    if not found:
        typer.echo("No events.")
        return
    for event in found:
        typer.echo(f"  {event.date}  {event.slug}  [{event.mode.value}] {event.title}")


@app.command()
def bookings(slug: str = typer.Argument(help="Slug of the event")) -> None:
    """List bookings for an event."""

    async def work(cache: ConnectionCache):
        event = await EventStore(cache).find_by_slug(slug)
        if event is None:
            return None
        return await BookingStore(cache).find_by_event(event.id)

    found = _run(work)
    if found is None:
        typer.echo(f"No event with slug {slug!r}.", err=True)
        raise typer.Exit(1)
    typer.echo(f"{len(found)} booking(s).")
    for booking in found:
        typer.echo(f"  {booking.created_at:%Y-%m-%d %H:%M}  {booking.email}")


if __name__ == "__main__":
    app()
