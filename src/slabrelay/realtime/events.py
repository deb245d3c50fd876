"""Change events — the only thing that travels over the realtime stream.

Learn: A ChangeEvent is transient. It is built either from a pg_notify
payload (inventory_update) or synthesized by the bridge (connected,
heartbeat, error), framed as one SSE `data:` line, and forgotten.

Wire shape (one JSON object per frame, attributes flattened in):
    {"type": "inventory_update", "operation": "INSERT", "id": "…",
     "itemName": "…", "vendorName": "…", "timestamp": "…"}

Consumers treat inventory_update as an invalidation signal only. The id and
attributes are there for logging, never for rebuilding state.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, AsyncIterator, Optional

from pydantic import BaseModel, Field, ValidationError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EventKind(str, Enum):
    CONNECTED = "connected"
    UPDATED = "inventory_update"
    HEARTBEAT = "heartbeat"
    ERROR = "error"


class Operation(str, Enum):
    """TG_OP values emitted by the inventory trigger."""

    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


# Top-level keys that map onto model fields; everything else is an attribute.
_WIRE_FIELDS = ("type", "operation", "id", "timestamp", "message")
_OPERATIONS = {op.value for op in Operation}


class ChangeEvent(BaseModel):
    type: EventKind
    operation: Optional[Operation] = None
    id: Optional[str] = None
    attributes: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utcnow)
    message: Optional[str] = None

    model_config = {"frozen": True}

    # ─── Bridge-synthesized events ───────────────────────

    @classmethod
    def connected(cls) -> "ChangeEvent":
        return cls(type=EventKind.CONNECTED)

    @classmethod
    def heartbeat(cls) -> "ChangeEvent":
        return cls(type=EventKind.HEARTBEAT)

    @classmethod
    def error(cls, message: str) -> "ChangeEvent":
        return cls(type=EventKind.ERROR, message=message)

    # ─── Wire format ─────────────────────────────────────

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "ChangeEvent":
        """Build an event from a flattened wire object.

        Raises pydantic.ValidationError on bad field values.
        """
        data = dict(data)
        fields: dict[str, Any] = {}
        for name in _WIRE_FIELDS:
            value = data.pop(name, None)
            if value is not None:
                fields[name] = value
        if "id" in fields:
            fields["id"] = str(fields["id"])
        fields["attributes"] = {k: v for k, v in data.items() if v is not None}
        return cls(**fields)

    def to_payload(self) -> dict[str, Any]:
        payload = self.model_dump(mode="json", exclude_none=True, exclude={"attributes"})
        for key, value in self.attributes.items():
            payload.setdefault(key, value)
        return payload

    def to_sse(self) -> str:
        """Frame as a single SSE message (data line + blank line)."""
        return f"data: {json.dumps(self.to_payload(), default=str)}\n\n"


def parse_notification(payload: Optional[str]) -> Optional[ChangeEvent]:
    """Turn a pg_notify payload into an inventory_update event.

    Returns None for anything malformed: not JSON, not an object, unknown
    operation, or no record id. Never raises: a bad payload must not be
    able to take a session down.
    """
    if not payload:
        return None
    try:
        data = json.loads(payload)
    except ValueError:
        return None
    if not isinstance(data, dict) or data.get("id") is None:
        return None
    operation = data.get("operation")
    if not isinstance(operation, str) or operation not in _OPERATIONS:
        return None
    try:
        return ChangeEvent.from_payload({**data, "type": EventKind.UPDATED.value})
    except ValidationError:
        return None


async def decode_sse(lines: AsyncIterator[str]) -> AsyncIterator[ChangeEvent]:
    """Decode SSE text lines back into ChangeEvents (client side).

    Multi-line `data:` fields are joined with newlines per the SSE rules.
    Comment lines (leading ':') and frames that are not a valid ChangeEvent
    are skipped. An unterminated trailing frame is discarded.
    """
    data: list[str] = []
    async for raw in lines:
        line = raw.rstrip("\r\n")
        if not line:
            if data:
                event = _decode_frame("\n".join(data))
                data = []
                if event is not None:
                    yield event
            continue
        if line.startswith(":"):
            continue
        field, _, value = line.partition(":")
        if field == "data":
            data.append(value[1:] if value.startswith(" ") else value)


def _decode_frame(text: str) -> Optional[ChangeEvent]:
    try:
        obj = json.loads(text)
    except ValueError:
        return None
    if not isinstance(obj, dict):
        return None
    try:
        return ChangeEvent.from_payload(obj)
    except ValidationError:
        return None
