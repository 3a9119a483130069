from __future__ import annotations

import threading
from typing import Optional, Protocol

from wsrelay.errors import SessionNotFound


class Session(Protocol):
    """One live client connection, as handed to the relay by the transport."""

    id: str

    async def send_text(self, text: str) -> None: ...

    async def close(self, code: int = 1000) -> None: ...


class SessionRegistry:
    """
    Live sessions keyed by id.

    The lock guards the mapping only. It is a thread lock so the registry can be
    shared with worker threads, and it is never held across a send.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sessions: dict[str, Session] = {}

    def open(self, session: Session) -> None:
        # Ids are not reused while live, so a duplicate simply replaces.
        with self._lock:
            self._sessions[session.id] = session

    def close(self, session_id: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.pop(session_id, None)

    def get(self, session_id: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(session_id)

    def require(self, session_id: str) -> Session:
        s = self.get(session_id)
        if s is None:
            raise SessionNotFound(session_id)
        return s

    def get_all(self) -> list[Session]:
        with self._lock:
            return list(self._sessions.values())

    def ids(self) -> list[str]:
        with self._lock:
            return list(self._sessions.keys())

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions
