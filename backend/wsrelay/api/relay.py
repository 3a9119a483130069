from __future__ import annotations

import json
from contextlib import aclosing
from typing import Any, AsyncIterator, Optional

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from wsrelay.events.bus import InboundBus
from wsrelay.ws.messages import BroadcastMessage, OutboundChannel, RoutedMessage
from wsrelay.ws.relay import Relay


router = APIRouter()


class SendTextBody(BaseModel):
    text: str = Field(..., min_length=1, description="Text to push to the frontend")


def _state(request: Request, name: str) -> Any:
    v = getattr(request.app.state, name, None)
    if v is None:
        raise HTTPException(status_code=503, detail="Relay not running")
    return v


def _sse(event: str, data: Any) -> bytes:
    payload = json.dumps(data, ensure_ascii=False)
    return f"event: {event}\ndata: {payload}\n\n".encode("utf-8")


async def event_stream(bus: InboundBus, *, limit: Optional[int] = None) -> AsyncIterator[bytes]:
    yield _sse("ready", {"ok": True})
    sent = 0
    if limit is not None and limit <= 0:
        return
    async with aclosing(bus.subscribe()) as events:
        async for ev in events:
            yield _sse("message", ev.to_payload())
            sent += 1
            if limit is not None and sent >= limit:
                return


@router.get("/api/relay/sessions")
def get_sessions(request: Request) -> dict:
    relay: Relay = _state(request, "relay")
    ids = relay.registry.ids()
    return {"sessions": ids, "count": len(ids)}


@router.get("/api/relay/events")
async def get_events(request: Request, limit: Optional[int] = Query(None, ge=1)) -> StreamingResponse:
    bus: InboundBus = _state(request, "bus")
    return StreamingResponse(event_stream(bus, limit=limit), media_type="text/event-stream")


@router.post("/api/relay/sessions/{session_id}/messages", status_code=202)
async def post_session_message(session_id: str, body: SendTextBody, request: Request) -> dict:
    channel: OutboundChannel = _state(request, "outbound")
    await channel.submit(RoutedMessage(session_id=session_id, text=body.text))
    return {"queued": True, "sessionId": session_id}


@router.post("/api/relay/broadcast", status_code=202)
async def post_broadcast(body: SendTextBody, request: Request) -> dict:
    channel: OutboundChannel = _state(request, "outbound")
    await channel.submit(BroadcastMessage(text=body.text))
    return {"queued": True}
