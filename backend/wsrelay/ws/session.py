from __future__ import annotations

import asyncio
from uuid import uuid4

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from wsrelay.errors import TransportError


class WebSocketSession:
    """
    Transport-side handle for one accepted socket.

    Writes are serialized per session so texts arrive in the order they were issued.
    """

    def __init__(self, ws: WebSocket, *, session_id: str | None = None) -> None:
        self.id = session_id or uuid4().hex
        self.ws = ws
        self._send_lock = asyncio.Lock()

    @property
    def client_host(self) -> str | None:
        return getattr(self.ws.client, "host", None)

    async def send_text(self, text: str) -> None:
        async with self._send_lock:
            if self.ws.application_state != WebSocketState.CONNECTED:
                raise TransportError(self.id)
            try:
                await self.ws.send_text(text)
            except Exception as e:  # noqa: BLE001
                raise TransportError(self.id, e) from e

    async def close(self, code: int = 1000) -> None:
        if self.ws.application_state == WebSocketState.DISCONNECTED:
            return
        try:
            await self.ws.close(code=code)
        except Exception as e:  # noqa: BLE001
            raise TransportError(self.id, e) from e

    def __repr__(self) -> str:
        return f"WebSocketSession(id={self.id!r})"
