"""Notification bridge — PostgreSQL LISTEN/NOTIFY relayed to SSE clients.

Learn: Each connected SSE client gets its own StreamSession, and each
session owns one dedicated subscriber connection from the SubscriberSource.
The session is an explicit state machine:

    CONNECTING ──acquire+LISTEN ok──▶ SUBSCRIBED ──teardown──▶ TORN_DOWN
        │                                                         ▲
        └──────────acquire/LISTEN failed (one error event)────────┘

Inside SUBSCRIBED, four things can happen:
- NotificationReceived → parse → inventory_update frame (bad payloads dropped)
- HeartbeatTick        → heartbeat frame every HEARTBEAT_INTERVAL seconds
- ClientDisconnected   → teardown (the response generator was cancelled)
- ConnectionError      → teardown (asyncpg termination listener fired)

Teardown is guarded by a synchronous check-and-set of the state. asyncio
never switches tasks between the check and the set, so when an error and a
disconnect race, exactly one of them releases the connection.

Delivery is at-most-once. Nothing is buffered across sessions or replayed
after a reconnect; clients re-read the inventory on every event, so a missed
event only costs them one stale moment.
"""

import asyncio
import uuid
from enum import Enum
from typing import AsyncIterator, Callable, Optional

import structlog

from slabrelay.realtime.cleanup import best_effort
from slabrelay.realtime.events import ChangeEvent, parse_notification
from slabrelay.realtime.source import AcquisitionError, SubscriberSource

logger = structlog.get_logger()

# Channel the inventory trigger publishes on (see db/triggers.py).
CHANNEL = "inventory_changes"

# Keeps idle streams alive through proxies and load balancers.
HEARTBEAT_INTERVAL = 30.0

# Sentinel that ends the outbound frame stream.
_CLOSE = object()


class SessionState(str, Enum):
    CONNECTING = "connecting"
    SUBSCRIBED = "subscribed"
    TORN_DOWN = "torn_down"


class StreamSession:
    """One client stream plus its dedicated LISTEN connection."""

    def __init__(
        self,
        source: SubscriberSource,
        channel: str = CHANNEL,
        heartbeat_interval: float = HEARTBEAT_INTERVAL,
        on_teardown: Optional[Callable[["StreamSession"], None]] = None,
    ):
        self.id = uuid.uuid4().hex[:12]
        self.source = source
        self.channel = channel
        self.heartbeat_interval = heartbeat_interval
        self.state = SessionState.CONNECTING
        self._on_teardown = on_teardown
        self._conn = None
        self._frames: asyncio.Queue = asyncio.Queue()
        self._heartbeat_task: Optional[asyncio.Task] = None
        self._teardown_task: Optional[asyncio.Task] = None
        self._release_task: Optional[asyncio.Task] = None

    # ─── Lifecycle ───────────────────────────────────────

    async def open(self) -> None:
        """Acquire a connection and LISTEN. Never raises.

        On failure the stream carries a single error event and then ends.
        The client reconnects on its own schedule; nothing is retried here.
        """
        try:
            conn = await self.source.acquire()
        except AcquisitionError as e:
            logger.warning("relay.acquire_failed", session=self.id, error=str(e))
            self._fail()
            return

        self._conn = conn
        if self.state is SessionState.TORN_DOWN:
            # Shut down while we were waiting for the pool.
            await self._release_connection()
            return

        try:
            await conn.add_listener(self.channel, self._on_notification)
        except Exception as e:
            logger.error("relay.listen_failed", session=self.id, channel=self.channel, error=str(e))
            self._fail()
            await self._release_connection()
            return

        if self.state is SessionState.TORN_DOWN:
            # Teardown raced the LISTEN and has already released the connection.
            return

        conn.add_termination_listener(self._on_connection_lost)
        self.state = SessionState.SUBSCRIBED
        self._emit(ChangeEvent.connected())
        self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())
        logger.info("relay.session_opened", session=self.id, channel=self.channel)

    async def teardown(self, reason: str) -> bool:
        """Stop the session. Only the first caller does any work.

        Returns True if this call performed the teardown.
        """
        if not self._begin_teardown(reason):
            return False
        await self._release_connection()
        return True

    async def frames(self) -> AsyncIterator[str]:
        """SSE frames for the response body, in emission order.

        Learn: When the client goes away, Starlette cancels the response,
        which lands in the finally block below. The state flips to TORN_DOWN
        before any await, and the connection release runs in a shielded task
        so a second cancellation cannot cut it short.
        """
        try:
            while True:
                frame = await self._frames.get()
                if frame is _CLOSE:
                    break
                yield frame
        finally:
            if self._begin_teardown("client_disconnected"):
                self._release_task = asyncio.ensure_future(self._release_connection())
                await asyncio.shield(self._release_task)

    # ─── Transitions ─────────────────────────────────────

    def _begin_teardown(self, reason: str) -> bool:
        """Synchronous half of teardown: the one-shot guard."""
        if self.state is SessionState.TORN_DOWN:
            return False
        previous = self.state
        self.state = SessionState.TORN_DOWN

        if self._heartbeat_task is not None:
            self._heartbeat_task.cancel()
        self._frames.put_nowait(_CLOSE)
        if self._on_teardown is not None:
            self._on_teardown(self)

        logger.info("relay.session_teardown", session=self.id, reason=reason, state=previous.value)
        return True

    async def _release_connection(self) -> None:
        conn, self._conn = self._conn, None
        if conn is None:
            return
        await best_effort(
            lambda: conn.remove_listener(self.channel, self._on_notification),
            "relay.unlisten_failed",
            session=self.id,
            channel=self.channel,
        )
        await best_effort(
            lambda: conn.remove_termination_listener(self._on_connection_lost),
            "relay.unlisten_failed",
            session=self.id,
        )
        await best_effort(
            lambda: self.source.release(conn), "relay.release_failed", session=self.id
        )

    def _fail(self) -> None:
        self._emit(ChangeEvent.error("Connection failed"))
        self._begin_teardown("connection_failed")

    # ─── Event handlers ──────────────────────────────────

    def _on_notification(self, connection, pid, channel, payload) -> None:
        """asyncpg listener callback (sync). One bad event never ends the session."""
        if self.state is not SessionState.SUBSCRIBED:
            return
        try:
            event = parse_notification(payload)
            if event is None:
                logger.debug("relay.payload_dropped", session=self.id, payload=str(payload)[:200])
                return
            self._emit(event)
        except Exception:
            logger.exception("relay.notification_error", session=self.id)

    def _on_connection_lost(self, connection) -> None:
        """asyncpg termination callback (sync). Schedules teardown."""
        if self.state is SessionState.TORN_DOWN:
            return
        logger.warning("relay.connection_lost", session=self.id)
        self._teardown_task = asyncio.get_running_loop().create_task(
            self.teardown("connection_lost")
        )

    async def _heartbeat_loop(self) -> None:
        while self.state is SessionState.SUBSCRIBED:
            await asyncio.sleep(self.heartbeat_interval)
            if self.state is not SessionState.SUBSCRIBED:
                break
            self._emit(ChangeEvent.heartbeat())

    def _emit(self, event: ChangeEvent) -> None:
        self._frames.put_nowait(event.to_sse())


class Bridge:
    """Registry of live StreamSessions sharing one SubscriberSource.

    Learn: The bridge holds no per-event state. Sessions are independent;
    the only thing they share is the source's capacity counter.
    """

    def __init__(
        self,
        source: SubscriberSource,
        channel: str = CHANNEL,
        heartbeat_interval: float = HEARTBEAT_INTERVAL,
    ):
        self.source = source
        self.channel = channel
        self.heartbeat_interval = heartbeat_interval
        self._sessions: set[StreamSession] = set()

    @property
    def active_sessions(self) -> int:
        return len(self._sessions)

    def _new_session(self) -> StreamSession:
        session = StreamSession(
            self.source,
            channel=self.channel,
            heartbeat_interval=self.heartbeat_interval,
            on_teardown=self._sessions.discard,
        )
        self._sessions.add(session)
        return session

    async def open_session(self) -> StreamSession:
        session = self._new_session()
        await session.open()
        return session

    async def stream(self) -> AsyncIterator[str]:
        """A whole session as one response body: open, relay, tear down.

        Learn: Nothing is acquired until the body is first iterated. A
        response that is abandoned before it starts streaming never opens
        a session, and one cancelled mid-open or mid-stream is torn down
        here. The teardown is shielded so a second cancel cannot skip the
        release.
        """
        session = self._new_session()
        try:
            await session.open()
            async for frame in session.frames():
                yield frame
        finally:
            await asyncio.shield(session.teardown("client_disconnected"))

    async def close(self) -> None:
        """Tear down every live session (process shutdown)."""
        sessions = list(self._sessions)
        if sessions:
            logger.info("relay.bridge_closing", sessions=len(sessions))
        await asyncio.gather(*(s.teardown("shutdown") for s in sessions))
