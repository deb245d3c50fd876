"""Slabrelay CLI — run the relay, manage the trigger, watch live inventory.

Usage:
    slabrelay serve                          # Run the API + SSE relay (uvicorn)
    slabrelay install-triggers               # Install the NOTIFY trigger on `sales`
    slabrelay drop-triggers                  # Remove it again
    slabrelay watch                          # Follow /api/v1/events, re-read on each change
    slabrelay watch --poll --interval 10     # Same, but on a timer instead of the stream
"""

from __future__ import annotations

import asyncio
import os
from datetime import datetime
from typing import Any

import click
import httpx

from slabrelay import __version__

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8000"


def _api_url() -> str:
    return os.environ.get("SLABRELAY_API_URL", DEFAULT_API_URL).rstrip("/")


def _client() -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the relay."""
    return httpx.AsyncClient(base_url=_api_url(), timeout=30.0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _summary(snapshot: Any) -> str:
    if isinstance(snapshot, list):
        broken = sum(1 for item in snapshot if isinstance(item, dict) and item.get("isBroken"))
        return f"{len(snapshot)} items ({broken} broken)"
    return str(snapshot)[:80]


def _stamp(when: datetime | None) -> str:
    return when.astimezone().strftime("%H:%M:%S") if when else "--:--:--"


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="slabrelay")
def main():
    """Slabrelay — live inventory change relay."""


# ---------------------------------------------------------------------------
# slabrelay serve
# ---------------------------------------------------------------------------


@main.command()
@click.option("--host", default=None, help="Bind address (default: SLABRELAY_HOST)")
@click.option("--port", default=None, type=int, help="Port (default: SLABRELAY_PORT)")
@click.option("--reload", is_flag=True, help="Auto-reload on code changes (development)")
def serve(host: str | None, port: int | None, reload: bool):
    """Run the API server and realtime relay."""
    import uvicorn

    from slabrelay.config import settings

    uvicorn.run(
        "slabrelay.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        # SSE streams stay open; don't let shutdown hang on them forever.
        timeout_graceful_shutdown=10,
    )


# ---------------------------------------------------------------------------
# slabrelay install-triggers / drop-triggers
# ---------------------------------------------------------------------------


@main.command("install-triggers")
def install_triggers_cmd():
    """Install the inventory NOTIFY trigger (idempotent)."""
    asyncio.run(_triggers_impl(install=True))
    click.secho("inventory_notify_trigger installed on sales", fg="green")


@main.command("drop-triggers")
def drop_triggers_cmd():
    """Remove the inventory NOTIFY trigger and its function."""
    asyncio.run(_triggers_impl(install=False))
    click.secho("inventory_notify_trigger dropped", fg="yellow")


async def _triggers_impl(install: bool):
    from slabrelay.db.engine import engine
    from slabrelay.db.triggers import drop_triggers, install_triggers

    try:
        async with engine.begin() as conn:
            if install:
                await install_triggers(conn)
            else:
                await drop_triggers(conn)
    finally:
        await engine.dispose()


# ---------------------------------------------------------------------------
# slabrelay watch
# ---------------------------------------------------------------------------


@main.command()
@click.option("--poll", is_flag=True, help="Poll the inventory instead of following the stream")
@click.option("--interval", default=5.0, show_default=True, help="Polling interval in seconds")
def watch(poll: bool, interval: float):
    """Print a line every time the inventory snapshot is refreshed."""
    try:
        asyncio.run(_watch_impl(poll, interval))
    except KeyboardInterrupt:
        click.echo()


async def _watch_impl(poll: bool, interval: float):
    from slabrelay.client import Poller, StreamConsumer, httpx_connector, httpx_fetcher

    click.echo(f"Watching {_api_url()} ({'polling' if poll else 'live stream'})")

    async with _client() as http:
        fetch = httpx_fetcher(http)

        if poll:
            poller = Poller(
                fetch,
                [],
                interval=interval,
                on_update=lambda data: click.echo(f"[{_stamp(poller.last_update)}] {_summary(data)}"),
                on_error=lambda e: click.secho(f"fetch failed: {e}", fg="red", err=True),
            )
            poller.start()
            try:
                await asyncio.Event().wait()
            finally:
                await poller.close()
            return

        def on_update(event):
            op = event.operation.value if event.operation else "?"
            click.echo(
                f"[{_stamp(consumer.last_update)}] {op:6s} {event.id}  →  {_summary(consumer.snapshot)}"
            )

        consumer = StreamConsumer(
            httpx_connector(http),
            fetch,
            [],
            on_update=on_update,
            on_error=lambda e: click.secho(f"fetch failed: {e}", fg="red", err=True),
        )
        await consumer.refetch()
        click.echo(f"[{_stamp(consumer.last_update)}] initial  {_summary(consumer.snapshot)}")
        consumer.start()
        try:
            await asyncio.Event().wait()
        finally:
            await consumer.stop()
