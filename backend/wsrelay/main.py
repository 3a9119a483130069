import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from wsrelay import config
from wsrelay.api.logs import router as logs_router
from wsrelay.api.relay import router as relay_router
from wsrelay.api.ws_relay import mount_relay_endpoint
from wsrelay.errors import HandshakeUnavailable
from wsrelay.events.bus import InboundBus
from wsrelay.logging.ndjson import init_logging, log_event
from wsrelay.ws.messages import OutboundChannel
from wsrelay.ws.registry import SessionRegistry
from wsrelay.ws.relay import BackendForward, Relay


def _load_dotenvs() -> None:
    """
    Load environment variables from:
    - backend/.env
    - repo-root/.env
    """
    from dotenv import load_dotenv

    backend_dir = Path(__file__).resolve().parents[1]
    repo_root = backend_dir.parent

    load_dotenv(backend_dir / ".env")
    load_dotenv(repo_root / ".env")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    # One registry and one relay per serving process, shared by every connection.
    registry = SessionRegistry()
    bus = InboundBus()
    forward = getattr(app.state, "backend_forward", None) or bus.publish
    relay = Relay(registry=registry, forward=forward)
    outbound = OutboundChannel()
    app.state.relay = relay
    app.state.bus = bus
    app.state.outbound = outbound

    consumer = asyncio.create_task(relay.run(outbound))
    log_event(level="info", event="app.startup", data={"path": config.WEBSOCKET_PATH})
    try:
        yield
    finally:
        consumer.cancel()
        try:
            await consumer
        except asyncio.CancelledError:
            pass
        closed = await relay.close_all()
        app.state.relay = None
        app.state.bus = None
        app.state.outbound = None
        log_event(level="info", event="app.shutdown", data={"closedSessions": closed})


def create_app(*, backend_forward: Optional[BackendForward] = None) -> FastAPI:
    """
    Build the relay app. Inbound client text goes to the SSE bus unless an
    in-process backend_forward is given.
    """
    _load_dotenvs()
    init_logging()
    app = FastAPI(title="wsrelay", version="0.1.0", lifespan=lifespan)
    app.state.backend_forward = backend_forward

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/api/health")
    def health() -> dict:
        return {"ok": True}

    @app.middleware("http")
    async def log_exceptions(request, call_next):  # type: ignore[no-untyped-def]
        try:
            return await call_next(request)
        except Exception as e:  # noqa: BLE001
            log_event(
                level="error",
                event="api.exception",
                data={"method": request.method, "path": str(request.url.path), "error": str(e)},
            )
            raise

    try:
        mount_relay_endpoint(app)
    except HandshakeUnavailable as e:
        log_event(level="error", event="relay.mount_failed", data={"path": e.path, "error": e.reason})
        raise

    app.include_router(relay_router)
    app.include_router(logs_router)
    return app


app = create_app()
