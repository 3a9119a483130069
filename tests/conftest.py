"""Test configuration and fixtures."""
import os
import tempfile

# Keep import-time logging out of the source tree.
os.environ.setdefault("RELAY_LOG_DIR", tempfile.mkdtemp(prefix="wsrelay-logs-"))

import pytest  # noqa: E402

from wsrelay.errors import TransportError  # noqa: E402
from wsrelay.ws.registry import SessionRegistry  # noqa: E402


class FakeSession:
    """Records texts sent to it; can be told to fail like a broken socket."""

    def __init__(self, session_id: str, *, broken: bool = False):
        self.id = session_id
        self.broken = broken
        self.sent: list[str] = []
        self.closed_with: list[int] = []

    async def send_text(self, text: str) -> None:
        if self.broken:
            raise TransportError(self.id)
        self.sent.append(text)

    async def close(self, code: int = 1000) -> None:
        self.closed_with.append(code)
        self.broken = True


@pytest.fixture(autouse=True)
def log_dir(tmp_path, monkeypatch):
    d = tmp_path / "logs"
    monkeypatch.setenv("RELAY_LOG_DIR", str(d))
    return d


@pytest.fixture
def registry():
    return SessionRegistry()
