"""End-to-end tests through the FastAPI app."""
import json
import time

import pytest
from fastapi import FastAPI, WebSocketDisconnect
from fastapi.testclient import TestClient

from wsrelay.api.ws_relay import mount_relay_endpoint
from wsrelay.errors import HandshakeUnavailable
from wsrelay.main import create_app


@pytest.fixture
def client():
    with TestClient(create_app()) as c:
        yield c


def _wait_until(pred, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if pred():
            return True
        time.sleep(0.01)
    return False


def _session_id(ack: str) -> str:
    prefix = "Opened frontend session "
    assert ack.startswith(prefix)
    return ack[len(prefix):]


def test_health(client):
    assert client.get("/api/health").json() == {"ok": True}


def test_open_acks_and_registers(client):
    with client.websocket_connect("/relay") as ws:
        sid = _session_id(ws.receive_text())
        body = client.get("/api/relay/sessions").json()
        assert body == {"sessions": [sid], "count": 1}
    assert _wait_until(lambda: client.get("/api/relay/sessions").json()["count"] == 0)


def test_targeted_send_reaches_only_target(client):
    with client.websocket_connect("/relay") as a, client.websocket_connect("/relay") as b:
        sid_a = _session_id(a.receive_text())
        _session_id(b.receive_text())

        r = client.post(f"/api/relay/sessions/{sid_a}/messages", json={"text": "hello a"})
        assert r.status_code == 202
        assert a.receive_text() == "hello a"

        client.post("/api/relay/broadcast", json={"text": "all"})
        assert a.receive_text() == "BROADCAST: all"
        assert b.receive_text() == "BROADCAST: all"


def test_send_to_ghost_is_accepted_and_dropped(client):
    with client.websocket_connect("/relay") as ws:
        sid = _session_id(ws.receive_text())
        assert client.post("/api/relay/sessions/ghost/messages", json={"text": "boo"}).status_code == 202
        client.post("/api/relay/broadcast", json={"text": "after"})
        assert ws.receive_text() == "BROADCAST: after"
        assert client.get("/api/relay/sessions").json()["sessions"] == [sid]


def test_empty_text_rejected(client):
    assert client.post("/api/relay/broadcast", json={"text": ""}).status_code == 422


def test_inbound_message_reaches_backend():
    received = []

    async def capture(ev):
        received.append(ev)

    with TestClient(create_app(backend_forward=capture)) as client:
        with client.websocket_connect("/relay") as ws:
            sid = _session_id(ws.receive_text())
            ws.send_text("ping")
            assert _wait_until(lambda: len(received) == 1)
    assert received[0].to_payload() == {"sessionId": sid, "text": "ping"}


def test_logs_tail_has_relay_events(client):
    with client.websocket_connect("/relay") as ws:
        ws.receive_text()
    assert _wait_until(lambda: any('"relay.close"' in ln for ln in client.get("/api/logs/tail").json()["lines"]))


def test_mount_conflict_raises_handshake_unavailable():
    app = FastAPI()
    mount_relay_endpoint(app)
    with pytest.raises(HandshakeUnavailable):
        mount_relay_endpoint(app)


def test_mount_without_app_raises():
    with pytest.raises(HandshakeUnavailable) as exc:
        mount_relay_endpoint(None)
    assert exc.value.path == "/relay"


def test_socket_refused_when_relay_not_running():
    app = create_app()
    client = TestClient(app)  # no lifespan
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/relay") as ws:
            ws.receive_text()
    assert exc.value.code == 1013


def test_backend_error_keeps_connection_open():
    received = []

    async def flaky(ev):
        if ev.text == "bad":
            raise RuntimeError("backend down")
        received.append(ev.text)

    with TestClient(create_app(backend_forward=flaky)) as client:
        with client.websocket_connect("/relay") as ws:
            sid = _session_id(ws.receive_text())
            ws.send_text("bad")
            ws.send_text("good")
            assert _wait_until(lambda: received == ["good"])
            assert client.get("/api/relay/sessions").json()["sessions"] == [sid]


def test_open_record_names_client(client, log_dir):
    with client.websocket_connect("/relay") as ws:
        ws.receive_text()
    opens = [
        json.loads(ln)
        for p in log_dir.glob("relay-*.ndjson")
        for ln in p.read_text(encoding="utf-8").splitlines()
        if '"relay.open"' in ln
    ]
    assert opens and opens[0]["data"]["client"] == "testclient"
