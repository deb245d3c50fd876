"""Request ID middleware — unique ID per request for tracing.

Learn: Every request gets a UUID, either from the incoming X-Request-ID
header or auto-generated. The ID is bound to structlog's contextvars, so
every log line a stream session writes (open, teardown, dropped payloads)
carries the request_id of the client that opened it.

Written as a pure ASGI middleware rather than BaseHTTPMiddleware: the
events endpoint streams for hours, and the header has to be injected
without wrapping the response body.
"""

import uuid

import structlog
from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send


class RequestIdMiddleware:
    """Generate and propagate a unique request ID."""

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        # Use existing request ID or generate a new one
        request_id = Headers(scope=scope).get("X-Request-ID") or str(uuid.uuid4())

        # Bind to structlog for correlated logging
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        async def send_with_request_id(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                headers["X-Request-ID"] = request_id
            await send(message)

        await self.app(scope, receive, send_with_request_id)
