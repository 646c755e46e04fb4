"""
Event-based WebSocket handlers
"""

import logging
from typing import Set

from fastapi import WebSocket

from events.event_bus import Event, EventBus, EventTypes

logger = logging.getLogger(__name__)


class WebSocketManager:
    """Tracks connected game clients and pushes JSON messages to them."""

    def __init__(self):
        self.active_connections: Set[WebSocket] = set()

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self.active_connections.add(websocket)
        logger.info(f"WebSocket client connected ({len(self.active_connections)} total)")

    def disconnect(self, websocket: WebSocket):
        self.active_connections.discard(websocket)

    async def broadcast(self, message: dict):
        disconnected = []
        for websocket in list(self.active_connections):
            try:
                await websocket.send_json(message)
            except Exception as e:
                logger.warning(f"Dropping websocket client after send error: {e}")
                disconnected.append(websocket)
        for websocket in disconnected:
            self.disconnect(websocket)


class WebSocketEventHandlers:
    """Forwards pool and game events from the bus to WebSocket clients."""

    def __init__(self, websocket_manager: WebSocketManager):
        self.websocket_manager = websocket_manager

    async def forward_event(self, event: Event):
        await self.websocket_manager.broadcast(event.to_message())

    def register_handlers(self, event_bus: EventBus):
        for event_type in EventTypes.ALL:
            event_bus.subscribe(event_type, self.forward_event)
        logger.info("WebSocket event handlers registered")
