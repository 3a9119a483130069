from __future__ import annotations

import os


WEBSOCKET_PATH = "/relay"


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, str(default)))
    except Exception:
        return default


def cors_origins() -> list[str]:
    raw = os.environ.get("RELAY_CORS_ORIGINS", "http://localhost:5173")
    return [o.strip() for o in raw.split(",") if o.strip()]


def log_dir_override() -> str:
    return os.environ.get("RELAY_LOG_DIR", "").strip()


def log_max_bytes() -> int:
    return _int_env("RELAY_LOG_MAX_BYTES", 50 * 1024 * 1024)


def log_retention_days() -> int:
    return _int_env("RELAY_LOG_RETENTION_DAYS", 7)


def bus_queue_size() -> int:
    # Per-subscriber backlog for inbound events.
    return _int_env("RELAY_BUS_QUEUE_SIZE", 100)


def outbound_queue_size() -> int:
    # 0 means unbounded.
    return _int_env("RELAY_OUTBOUND_QUEUE_SIZE", 0)
