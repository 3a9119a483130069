from __future__ import annotations

import asyncio
from typing import AsyncIterator

from wsrelay import config
from wsrelay.logging.ndjson import log_event
from wsrelay.ws.messages import InboundEvent


class InboundBus:
    """
    Fans inbound client text out to every backend subscriber.

    Nothing is stored: with no subscriber attached an event is simply dropped.
    """

    def __init__(self, queue_size: int | None = None) -> None:
        self._queue_size = config.bus_queue_size() if queue_size is None else queue_size
        self._subscribers: set[asyncio.Queue[InboundEvent]] = set()
        self._lock = asyncio.Lock()

    async def publish(self, ev: InboundEvent) -> int:
        async with self._lock:
            queues = list(self._subscribers)
        delivered = 0
        for q in queues:
            # best-effort, drop if backpressure
            try:
                q.put_nowait(ev)
                delivered += 1
            except asyncio.QueueFull:
                log_event(level="warn", event="bus.dropped", sessionId=ev.session_id, data={"reason": "queue_full"})
        if not queues:
            log_event(level="debug", event="bus.dropped", sessionId=ev.session_id, data={"reason": "no_subscribers"})
        return delivered

    async def subscriber_count(self) -> int:
        async with self._lock:
            return len(self._subscribers)

    async def subscribe(self) -> AsyncIterator[InboundEvent]:
        q: asyncio.Queue[InboundEvent] = asyncio.Queue(maxsize=self._queue_size)
        async with self._lock:
            self._subscribers.add(q)

        try:
            while True:
                ev = await q.get()
                yield ev
        finally:
            async with self._lock:
                self._subscribers.discard(q)
