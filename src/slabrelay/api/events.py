"""Server-Sent Events endpoint — live inventory change stream.

Learn: GET /api/v1/events never finishes on its own. The response body is
bridge.stream(): its first read opens a StreamSession (one dedicated
LISTEN connection), and it streams frames until the client leaves, the
connection drops or the server shuts down. The headers below stop
proxies from buffering or caching the stream; X-Accel-Buffering is the
nginx-specific switch.

When no subscriber connection is available the response still returns
200, carrying a single error event before it ends. EventSource clients
treat that like any other closed stream and reconnect.
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse

from slabrelay.realtime.bridge import Bridge

router = APIRouter()

STREAM_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def get_bridge(request: Request) -> Bridge:
    """The bridge lives on app.state, built by the lifespan."""
    bridge = getattr(request.app.state, "bridge", None)
    if bridge is None:
        raise HTTPException(status_code=503, detail="Realtime relay not initialized")
    return bridge


@router.get("/events")
async def stream_events(bridge: Bridge = Depends(get_bridge)):
    """Stream inventory change events as text/event-stream."""
    return StreamingResponse(
        bridge.stream(),
        media_type="text/event-stream",
        headers=STREAM_HEADERS,
    )
