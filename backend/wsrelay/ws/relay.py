from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

from wsrelay.errors import SessionNotFound, TransportError
from wsrelay.logging.ndjson import log_event
from wsrelay.ws.messages import BroadcastMessage, InboundEvent, OutboundChannel, OutboundMessage, RoutedMessage
from wsrelay.ws.registry import Session, SessionRegistry


BackendForward = Callable[[InboundEvent], Awaitable[Any]]

BROADCAST_PREFIX = "BROADCAST: "


def _ack_text(session_id: str) -> str:
    return f"Opened frontend session {session_id}"


class Relay:
    """
    Frontend endpoint shared by every connection.

    Lifecycle per session: CONNECTING -> OPEN -> CLOSED, or OPEN -> ERROR -> CLOSED.
    The transport calls on_open first, on_close last, and never anything after on_close.
    """

    def __init__(self, *, registry: SessionRegistry, forward: BackendForward) -> None:
        self.registry = registry
        self._forward = forward

    async def on_open(self, session: Session) -> None:
        self.registry.open(session)
        log_event(
            level="info",
            event="relay.open",
            sessionId=session.id,
            data={"live": len(self.registry), "client": getattr(session, "client_host", None)},
        )
        await self._send(session, _ack_text(session.id))

    async def on_message(self, session: Session, text: str) -> None:
        log_event(level="info", event="relay.message", sessionId=session.id, data={"textLen": len(text)})
        try:
            await self._forward(InboundEvent(session_id=session.id, text=text))
        except Exception as e:  # noqa: BLE001
            # A backend failure drops this message only; the connection stays open.
            log_event(
                level="error",
                event="relay.forward_failed",
                sessionId=session.id,
                data={"type": type(e).__name__, "error": str(e)},
            )

    async def on_close(self, session: Session, reason: Any = None) -> None:
        removed = self.registry.close(session.id)
        log_event(
            level="info",
            event="relay.close",
            sessionId=session.id,
            data={"reason": reason, "registered": removed is not None, "live": len(self.registry)},
        )

    async def on_error(self, session: Session, error: BaseException) -> None:
        # Unregistering is left to on_close, which the transport always calls next.
        log_event(
            level="warn",
            event="relay.error",
            sessionId=session.id,
            data={"type": type(error).__name__, "error": str(error)},
        )

    async def deliver(self, msg: RoutedMessage) -> bool:
        try:
            session = self.registry.require(msg.session_id)
        except SessionNotFound as e:
            log_event(level="warn", event="relay.session_not_found", sessionId=e.session_id, data={"error": str(e)})
            return False
        return await self._send(session, msg.text)

    async def broadcast(self, text: str) -> int:
        targets = self.registry.get_all()
        log_event(level="info", event="relay.broadcast", data={"text": text, "targets": len(targets)})
        if not targets:
            return 0
        payload = BROADCAST_PREFIX + text
        results = await asyncio.gather(*(self._send(s, payload) for s in targets), return_exceptions=True)
        for s, r in zip(targets, results):
            if isinstance(r, BaseException):
                log_event(level="warn", event="relay.send_failed", sessionId=s.id, data={"type": type(r).__name__, "error": str(r)})
        return sum(1 for r in results if r is True)

    async def dispatch(self, msg: OutboundMessage) -> None:
        if isinstance(msg, RoutedMessage):
            await self.deliver(msg)
        elif isinstance(msg, BroadcastMessage):
            await self.broadcast(msg.text)
        else:
            raise TypeError(f"Unsupported outbound message: {type(msg).__name__}")

    async def run(self, channel: OutboundChannel) -> None:
        """Dispatch backend requests from the channel until cancelled."""
        async for msg in channel:
            try:
                await self.dispatch(msg)
            except Exception as e:  # noqa: BLE001
                log_event(level="error", event="relay.dispatch_failed", data={"type": type(e).__name__, "error": str(e)})
            finally:
                channel.task_done()

    async def close_all(self, code: int = 1001) -> int:
        """Close every socket still registered. Used at shutdown."""
        closed = 0
        for s in self.registry.get_all():
            try:
                await s.close(code)
                closed += 1
            except TransportError as e:
                log_event(level="debug", event="relay.close_failed", sessionId=s.id, data={"error": str(e)})
        return closed

    async def _send(self, session: Session, text: str) -> bool:
        try:
            await session.send_text(text)
            return True
        except TransportError as e:
            level = "warn" if session.id in self.registry else "debug"
            log_event(level=level, event="relay.send_failed", sessionId=session.id, data={"error": str(e)})
            return False
        except Exception as e:  # noqa: BLE001
            log_event(
                level="warn",
                event="relay.send_failed",
                sessionId=session.id,
                data={"type": type(e).__name__, "error": str(e)},
            )
            return False
