"""Stream consumer — keeps a local snapshot in sync with the relay.

Learn: The consumer holds one SSE connection at a time and reacts to events:

    connected         → connected = True
    inventory_update  → refetch(): replace the snapshot wholesale
    heartbeat         → nothing (the stream is alive)
    error             → logged; the server ends the stream right after

When the stream closes or errors, connected goes False, the connection is
closed, and after RECONNECT_DELAY seconds exactly one new attempt is made.
The delay is fixed with no backoff and no attempt limit. The relay caps
its own subscriber connections, so a failed attempt is cheap for the server.

No diffing, no merging, no optimistic updates from the event payload: one
extra round trip per change buys a snapshot that never drifts from the
server.

Usage:
    async with httpx.AsyncClient(base_url="http://localhost:8000") as http:
        consumer = StreamConsumer(httpx_connector(http), httpx_fetcher(http), [])
        consumer.start()
        ...
        await consumer.stop()
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import (
    Any,
    AsyncContextManager,
    AsyncIterator,
    Awaitable,
    Callable,
    Generic,
    Optional,
    TypeVar,
)

import httpx
import structlog

from slabrelay.realtime.cleanup import guarded_call
from slabrelay.realtime.events import ChangeEvent, EventKind, decode_sse

logger = structlog.get_logger()

T = TypeVar("T")

# Seconds between a dropped stream and the next connection attempt.
RECONNECT_DELAY = 5.0

Connector = Callable[[], AsyncContextManager[AsyncIterator[str]]]


def httpx_connector(client: httpx.AsyncClient, path: str = "/api/v1/events") -> Connector:
    """Open the SSE endpoint and yield its body as text lines."""

    @asynccontextmanager
    async def connect():
        async with client.stream(
            "GET",
            path,
            headers={"Accept": "text/event-stream"},
            timeout=httpx.Timeout(10.0, read=None),
        ) as response:
            response.raise_for_status()
            yield response.aiter_lines()

    return connect


def httpx_fetcher(client: httpx.AsyncClient, path: str = "/api/v1/inventory") -> Callable[[], Awaitable[Any]]:
    """Plain GET of the snapshot endpoint, decoded as JSON."""

    async def fetch():
        response = await client.get(path)
        response.raise_for_status()
        return response.json()

    return fetch


class StreamConsumer(Generic[T]):
    """Invalidate-then-refetch consumer of the relay's event stream."""

    def __init__(
        self,
        connect: Connector,
        fetch: Callable[[], Awaitable[T]],
        initial: T,
        reconnect_delay: float = RECONNECT_DELAY,
        on_update: Optional[Callable[[ChangeEvent], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ):
        self._connect = connect
        self._fetch = fetch
        self.reconnect_delay = reconnect_delay
        self.on_update = on_update
        self.on_error = on_error

        self.snapshot: T = initial
        self.connected = False
        self.last_update: Optional[datetime] = None
        self.error: Optional[Exception] = None
        self.attempts = 0

        self._task: Optional[asyncio.Task] = None
        self._stopped = False

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ─── Controls ────────────────────────────────────────

    def start(self) -> None:
        """Connect in the background. No-op if already running."""
        if self.is_running:
            return
        self._stopped = False
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Cancel any pending reconnect and close the active stream.

        Safe to call repeatedly, and before start().
        """
        self._stopped = True
        self.connected = False
        task, self._task = self._task, None
        if task is None or task.done() or task is asyncio.current_task():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def replace_snapshot(self, value: T) -> None:
        """Accept a snapshot from elsewhere (e.g. a full page refresh)."""
        self.snapshot = value

    async def refetch(self) -> None:
        """Re-read the snapshot. Failures land in `error`, never in the stream."""
        try:
            value = await self._fetch()
        except Exception as e:
            self.error = e
            logger.warning("consumer.refetch_failed", error=str(e))
            guarded_call(self.on_error, e, event="consumer.on_error_failed")
            return
        self.snapshot = value
        self.error = None
        self.last_update = datetime.now(timezone.utc)

    # ─── Connection loop ─────────────────────────────────

    async def _run(self) -> None:
        while not self._stopped:
            self.attempts += 1
            try:
                async with self._connect() as lines:
                    async for event in decode_sse(lines):
                        await self._handle(event)
                logger.info("consumer.stream_closed", attempt=self.attempts)
            except Exception as e:
                logger.warning("consumer.stream_error", attempt=self.attempts, error=str(e))

            self.connected = False
            if self._stopped:
                break
            await asyncio.sleep(self.reconnect_delay)

    async def _handle(self, event: ChangeEvent) -> None:
        if event.type is EventKind.CONNECTED:
            self.connected = True
            logger.info("consumer.connected", attempt=self.attempts)
        elif event.type is EventKind.UPDATED:
            logger.debug(
                "consumer.invalidated",
                operation=event.operation.value if event.operation else None,
                record_id=event.id,
            )
            await self.refetch()
            guarded_call(self.on_update, event, event="consumer.on_update_failed")
        elif event.type is EventKind.ERROR:
            logger.warning("consumer.server_error", message=event.message)
