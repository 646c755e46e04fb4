"""
Tests for events/event_bus.py and the WebSocket fan-out built on it.
"""

import asyncio

import pytest

from events.event_bus import Event, EventBus, EventTypes
from web.websocket_handlers import WebSocketEventHandlers, WebSocketManager


class RecordingSocket:
    def __init__(self, broken: bool = False):
        self.sent = []
        self.broken = broken

    async def accept(self):
        pass

    async def send_json(self, message):
        if self.broken:
            raise RuntimeError("socket closed")
        self.sent.append(message)


async def drain(bus: EventBus):
    """Give the processor time to dispatch everything queued so far."""
    for _ in range(10):
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_emit_reaches_subscribers():
    bus = EventBus()
    await bus.start()
    received = []

    async def listener(event: Event):
        received.append(event)

    bus.subscribe(EventTypes.POOL_REFILLED, listener)
    await bus.emit(EventTypes.POOL_REFILLED, {"size": 20})
    await bus.emit(EventTypes.GAME_FINISHED, {})
    await drain(bus)

    assert [e.type for e in received] == [EventTypes.POOL_REFILLED]
    assert received[0].data == {"size": 20}
    await bus.stop()


@pytest.mark.asyncio
async def test_failing_listener_does_not_block_others():
    bus = EventBus()
    await bus.start()
    received = []

    async def broken(event):
        raise ValueError("boom")

    async def healthy(event):
        received.append(event.type)

    bus.subscribe(EventTypes.ROUND_RECORDED, broken)
    bus.subscribe(EventTypes.ROUND_RECORDED, healthy)
    await bus.emit(EventTypes.ROUND_RECORDED, {"attempt": 1})
    await drain(bus)

    assert received == [EventTypes.ROUND_RECORDED]
    await bus.stop()


@pytest.mark.asyncio
async def test_emit_before_start_is_dropped():
    bus = EventBus()

    await bus.emit(EventTypes.SIGNAL_READY, {"round": 1})

    assert bus.dropped == 1
    assert bus.emitted == 0


@pytest.mark.asyncio
async def test_websocket_fan_out_drops_broken_clients():
    bus = EventBus()
    await bus.start()
    manager = WebSocketManager()
    WebSocketEventHandlers(manager).register_handlers(bus)
    good, bad = RecordingSocket(), RecordingSocket(broken=True)
    await manager.connect(good)
    await manager.connect(bad)

    await bus.emit(EventTypes.POOL_REFILL_FAILED, {"last_error": "signer offline"})
    await drain(bus)

    assert good.sent[0]["type"] == "pool_refill_failed"
    assert good.sent[0]["data"] == {"last_error": "signer offline"}
    assert bad not in manager.active_connections
    await bus.stop()
