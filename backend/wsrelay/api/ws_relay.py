from __future__ import annotations

from typing import Any

from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from wsrelay.config import WEBSOCKET_PATH
from wsrelay.errors import HandshakeUnavailable, TransportError
from wsrelay.ws.relay import Relay
from wsrelay.ws.session import WebSocketSession


async def ws_relay(ws: WebSocket) -> None:
    relay: Relay | None = getattr(ws.app.state, "relay", None)
    if relay is None:
        # App is not (or no longer) serving; 1013 = try again later.
        await ws.close(code=1013)
        return

    await ws.accept()
    session = WebSocketSession(ws)
    await relay.on_open(session)

    close_reason: dict[str, Any] | None = None
    try:
        while True:
            try:
                text = await ws.receive_text()
            except WebSocketDisconnect as e:
                close_reason = {"code": e.code, "reason": getattr(e, "reason", None) or None}
                break
            await relay.on_message(session, text)
    except Exception as e:  # noqa: BLE001
        await relay.on_error(session, e)
        close_reason = {"code": 1011, "error": str(e)}
        try:
            await session.close(code=1011)
        except TransportError:
            pass
    finally:
        await relay.on_close(session, close_reason)


def mount_relay_endpoint(app: FastAPI | None) -> None:
    """
    Bind the relay socket at its fixed path. Raises HandshakeUnavailable when that is impossible.
    """
    if app is None:
        raise HandshakeUnavailable(WEBSOCKET_PATH, "application not available")
    for route in app.router.routes:
        if getattr(route, "path", None) == WEBSOCKET_PATH:
            raise HandshakeUnavailable(WEBSOCKET_PATH, f"path already bound to {getattr(route, 'name', route)!s}")
    app.add_api_websocket_route(WEBSOCKET_PATH, ws_relay, name="relay")
