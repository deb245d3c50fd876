"""Polling fallback — timer-driven re-fetch for views that don't need push.

Learn: Same philosophy as the stream consumer, minus the stream. A tick
means "go re-read"; whatever fetch() returns replaces `data`.

    poller = Poller(fetch_dashboard, initial, interval=10.0)
    poller.start()          # fetch now, then every 10s
    poller.stop()           # cancel the timer (safe to repeat)
    poller.set_enabled(True)  # resume, fetching immediately
    await poller.close()    # stop for good; no state changes afterwards

A failed fetch is recorded in `error` and reported to on_error, but the
timer keeps going: the next tick is the retry. There is no backoff; the
interval is the only bound.
"""

import asyncio
from datetime import datetime, timezone
from typing import Awaitable, Callable, Generic, Optional, TypeVar

import structlog

from slabrelay.realtime.cleanup import guarded_call

logger = structlog.get_logger()

T = TypeVar("T")

DEFAULT_INTERVAL = 5.0  # seconds


class Poller(Generic[T]):
    """Re-fetch on a fixed interval, exposing data/is_loading/error/last_update."""

    def __init__(
        self,
        fetch: Callable[[], Awaitable[T]],
        initial: T,
        interval: float = DEFAULT_INTERVAL,
        enabled: bool = True,
        on_update: Optional[Callable[[T], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ):
        self._fetch = fetch
        self.interval = interval
        self.enabled = enabled
        self.on_update = on_update
        self.on_error = on_error

        self.data: T = initial
        self.is_loading = False
        self.error: Optional[Exception] = None
        self.last_update: Optional[datetime] = None

        self._task: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def is_polling(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self._closed or not self.enabled or self.is_polling:
            return
        self._task = asyncio.create_task(self._loop())

    def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None:
            task.cancel()

    def set_enabled(self, enabled: bool) -> None:
        self.enabled = enabled
        if enabled:
            self.start()
        else:
            self.stop()

    async def close(self) -> None:
        """Tear down. Fetches still in flight will not touch state."""
        self._closed = True
        task = self._task
        self.stop()
        if task is not None and task is not asyncio.current_task():
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def refetch(self) -> None:
        if self._closed:
            return

        self.is_loading = True
        self.error = None
        try:
            value = await self._fetch()
        except Exception as e:
            if self._closed:
                return
            self.error = e
            logger.warning("poller.fetch_failed", error=str(e))
            guarded_call(self.on_error, e, event="poller.on_error_failed")
            return
        finally:
            if not self._closed:
                self.is_loading = False

        if self._closed:
            return
        self.data = value
        self.last_update = datetime.now(timezone.utc)
        guarded_call(self.on_update, value, event="poller.on_update_failed")

    async def _loop(self) -> None:
        while True:
            await self.refetch()
            await asyncio.sleep(self.interval)
