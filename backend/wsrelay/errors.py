from __future__ import annotations

from typing import Optional


class RelayError(RuntimeError):
    """Base class for relay failures."""


class SessionNotFound(RelayError):
    """
    A targeted send named a session id that is not registered.

    Recoverable: the message is dropped and logged.
    """

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Frontend session {session_id} not found")


class TransportError(RelayError):
    """
    The underlying connection of a session is closed or broken.

    Raised from the send/close path of a session; never propagates past the relay.
    """

    def __init__(self, session_id: str, cause: Optional[BaseException] = None):
        self.session_id = session_id
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Transport failure on session {session_id}{detail}")


class HandshakeUnavailable(RelayError):
    """The relay endpoint cannot be mounted at all. Fatal to startup."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to deploy frontend endpoint {path}: {reason}")
