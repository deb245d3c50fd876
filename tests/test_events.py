"""Change event tests — notification parsing, SSE framing, SSE decoding."""

import json

import pytest

from slabrelay.realtime.events import (
    ChangeEvent,
    EventKind,
    Operation,
    decode_sse,
    parse_notification,
)


async def _lines(*items):
    for item in items:
        yield item


def _sse_body(frame: str) -> dict:
    assert frame.startswith("data: ")
    assert frame.endswith("\n\n")
    return json.loads(frame[len("data: "):].strip())


# ─── parse_notification ─────────────────────────────────


def test_parse_insert_payload():
    """A trigger payload becomes an inventory_update with attributes kept."""
    payload = json.dumps({
        "operation": "INSERT",
        "table": "sales",
        "id": "3f1c7a52-8c7e-4f7b-9a34-0c2b8f1d9e11",
        "itemName": "Calacatta Gold",
        "vendorName": "Stone Source",
        "timestamp": "2026-03-02T14:05:11.123456+00:00",
    })
    event = parse_notification(payload)

    assert event is not None
    assert event.type is EventKind.UPDATED
    assert event.operation is Operation.INSERT
    assert event.id == "3f1c7a52-8c7e-4f7b-9a34-0c2b8f1d9e11"
    assert event.attributes == {
        "table": "sales",
        "itemName": "Calacatta Gold",
        "vendorName": "Stone Source",
    }
    assert event.timestamp.year == 2026


def test_parse_delete_payload_without_display_fields():
    event = parse_notification('{"operation": "DELETE", "table": "sales", "id": 17}')
    assert event is not None
    assert event.operation is Operation.DELETE
    assert event.id == "17"
    assert event.timestamp is not None


def test_parse_drops_null_attributes():
    event = parse_notification(
        '{"operation": "UPDATE", "id": "a", "itemName": null, "vendorName": "Arizona Tile"}'
    )
    assert event.attributes == {"vendorName": "Arizona Tile"}


@pytest.mark.parametrize(
    "payload",
    [
        None,
        "",
        "not json",
        "{truncated",
        "[1, 2, 3]",
        '"INSERT"',
        '{"id": "x"}',
        '{"operation": "INSERT"}',
        '{"operation": "TRUNCATE", "id": "x"}',
        '{"operation": ["INSERT"], "id": "x"}',
        '{"operation": "INSERT", "id": "x", "timestamp": "yesterday-ish"}',
    ],
)
def test_parse_malformed_returns_none(payload):
    """Malformed payloads never raise; they are simply not events."""
    assert parse_notification(payload) is None


# ─── to_sse ─────────────────────────────────────────────


def test_sse_frame_flattens_attributes():
    event = parse_notification(
        '{"operation": "INSERT", "id": "42", "itemName": "Taj Mahal", "timestamp": "2026-01-01T00:00:00+00:00"}'
    )
    body = _sse_body(event.to_sse())

    assert body == {
        "type": "inventory_update",
        "operation": "INSERT",
        "id": "42",
        "itemName": "Taj Mahal",
        "timestamp": "2026-01-01T00:00:00Z",
    }


def test_attributes_cannot_shadow_core_fields():
    event = ChangeEvent(type=EventKind.UPDATED, id="1", attributes={"type": "spoofed"})
    assert _sse_body(event.to_sse())["type"] == "inventory_update"


def test_synthesized_events_frame():
    assert _sse_body(ChangeEvent.connected().to_sse())["type"] == "connected"
    assert _sse_body(ChangeEvent.heartbeat().to_sse())["type"] == "heartbeat"

    error = _sse_body(ChangeEvent.error("Connection failed").to_sse())
    assert error["type"] == "error"
    assert error["message"] == "Connection failed"
    assert "operation" not in error


def test_events_are_immutable():
    event = ChangeEvent.heartbeat()
    with pytest.raises(Exception):
        event.type = EventKind.ERROR


# ─── decode_sse ─────────────────────────────────────────


@pytest.mark.asyncio
async def test_decode_round_trips_bridge_frames():
    """Frames written by the bridge decode back on the client side."""
    update = parse_notification('{"operation": "UPDATE", "id": "9", "vendorName": "MSI"}')
    text = ChangeEvent.connected().to_sse() + update.to_sse()
    lines = text.split("\n")

    events = [e async for e in decode_sse(_lines(*lines))]

    assert [e.type for e in events] == [EventKind.CONNECTED, EventKind.UPDATED]
    assert events[1].id == "9"
    assert events[1].attributes == {"vendorName": "MSI"}


@pytest.mark.asyncio
async def test_decode_skips_comments_and_garbage():
    events = [
        e
        async for e in decode_sse(
            _lines(
                ": keep-alive",
                "",
                "data: not json",
                "",
                'data: {"type": "mystery"}',
                "",
                "event: ignored-field",
                'data: {"type": "heartbeat"}',
                "",
            )
        )
    ]
    assert [e.type for e in events] == [EventKind.HEARTBEAT]


@pytest.mark.asyncio
async def test_decode_joins_multiline_data_and_drops_unterminated_frame():
    events = [
        e
        async for e in decode_sse(
            _lines(
                'data: {"type":',
                'data:  "connected"}',
                "",
                'data: {"type": "heartbeat"}',
            )
        )
    ]
    assert [e.type for e in events] == [EventKind.CONNECTED]
