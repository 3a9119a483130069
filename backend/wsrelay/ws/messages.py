from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import AsyncIterator, Union

from wsrelay import config


@dataclass(frozen=True)
class InboundEvent:
    session_id: str
    text: str

    def to_payload(self) -> dict[str, str]:
        return {"sessionId": self.session_id, "text": self.text}


@dataclass(frozen=True)
class RoutedMessage:
    session_id: str
    text: str


@dataclass(frozen=True)
class BroadcastMessage:
    text: str


OutboundMessage = Union[RoutedMessage, BroadcastMessage]


class OutboundChannel:
    """
    Backend-to-frontend requests waiting for the relay to dispatch them.
    """

    def __init__(self, maxsize: int | None = None) -> None:
        size = config.outbound_queue_size() if maxsize is None else maxsize
        self._queue: asyncio.Queue[OutboundMessage] = asyncio.Queue(maxsize=size)

    async def submit(self, msg: OutboundMessage) -> None:
        await self._queue.put(msg)

    def submit_nowait(self, msg: OutboundMessage) -> None:
        self._queue.put_nowait(msg)

    def task_done(self) -> None:
        self._queue.task_done()

    async def join(self) -> None:
        await self._queue.join()

    async def __aiter__(self) -> AsyncIterator[OutboundMessage]:
        while True:
            yield await self._queue.get()
