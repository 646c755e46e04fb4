"""
Event bus carrying pool and game notifications to WebSocket clients
"""

import asyncio
import logging
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

Listener = Callable[["Event"], Awaitable[None]]


@dataclass
class Event:
    type: str
    data: Dict[str, Any]
    timestamp: float = field(default_factory=time.time)
    source: str = "system"

    def to_message(self) -> Dict[str, Any]:
        """JSON-ready form pushed over the socket"""
        return {"type": self.type, "data": self.data, "timestamp": self.timestamp}


class EventTypes:
    POOL_REFILLED = "pool_refilled"
    POOL_REFILL_FAILED = "pool_refill_failed"

    SIGNAL_READY = "signal_ready"
    ROUND_RECORDED = "round_recorded"
    GAME_FINISHED = "game_finished"

    ALL = (POOL_REFILLED, POOL_REFILL_FAILED, SIGNAL_READY, ROUND_RECORDED, GAME_FINISHED)


class EventBus:
    """
    Queues events from the pool and the game session and fans them out to
    subscribed listeners. Producers never wait on listeners, and a failing
    listener is logged without affecting the others.

    One bus belongs to one running service; the queue is created in
    ``start`` so it binds to the loop the service runs on.
    """

    def __init__(self):
        self.listeners: Dict[str, List[Listener]] = defaultdict(list)
        self.event_queue: Optional[asyncio.Queue] = None
        self.running = False
        self.processor_task: Optional[asyncio.Task] = None
        self.emitted = 0
        self.dropped = 0

    async def start(self):
        if self.running:
            return
        self.event_queue = asyncio.Queue()
        self.running = True
        self.processor_task = asyncio.create_task(self._process_events())
        logger.info("EventBus started")

    async def stop(self):
        """Stop processing; events still queued are discarded"""
        self.running = False
        if self.processor_task is None:
            return
        self.processor_task.cancel()
        try:
            await self.processor_task
        except asyncio.CancelledError:
            pass
        self.processor_task = None
        logger.info(f"EventBus stopped ({self.emitted} emitted, {self.dropped} dropped)")

    async def _process_events(self):
        while self.running:
            event = await self.event_queue.get()
            await self._dispatch_event(event)

    async def _dispatch_event(self, event: Event):
        listeners = list(self.listeners.get(event.type, ()))
        if not listeners:
            return

        results = await asyncio.gather(
            *(listener(event) for listener in listeners),
            return_exceptions=True
        )
        for listener, result in zip(listeners, results):
            if isinstance(result, Exception):
                logger.error(f"Listener {getattr(listener, '__name__', listener)} failed on {event.type}: {result}")

    def subscribe(self, event_type: str, listener: Listener):
        self.listeners[event_type].append(listener)

    def unsubscribe(self, event_type: str, listener: Listener):
        if listener in self.listeners[event_type]:
            self.listeners[event_type].remove(listener)

    async def emit(self, event_type: str, data: Dict[str, Any], source: str = "system"):
        """Queue an event; dropped when the bus is not running"""
        if not self.running:
            self.dropped += 1
            logger.debug(f"EventBus not running, dropping {event_type}")
            return
        self.emitted += 1
        await self.event_queue.put(Event(type=event_type, data=data, source=source))
