from __future__ import annotations

import json
import threading
import time
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Optional

from wsrelay import config

_lock = threading.Lock()

LOG_PREFIX = "relay"


def _backend_dir() -> Path:
    # backend/wsrelay/logging/ndjson.py -> backend/
    return Path(__file__).resolve().parents[2]


def log_dir() -> Path:
    p = config.log_dir_override()
    if p:
        return Path(p)
    return _backend_dir() / "data" / "logs"


def _today_prefix(ts: Optional[float] = None) -> str:
    dt = datetime.fromtimestamp(ts or time.time())
    return dt.strftime(f"{LOG_PREFIX}-%Y-%m-%d")


def _truncate(v: Any, *, max_len: int = 600) -> Any:
    if v is None:
        return None
    if isinstance(v, str):
        if len(v) <= max_len:
            return v
        return v[:max_len] + f"...(+{len(v) - max_len} chars)"
    if isinstance(v, (int, float, bool)):
        return v
    if isinstance(v, dict):
        out: dict[str, Any] = {}
        for k, vv in list(v.items())[:80]:
            out[str(k)] = _truncate(vv, max_len=max_len)
        if len(v) > 80:
            out["_truncated_keys"] = len(v) - 80
        return out
    if isinstance(v, (list, tuple)):
        items = [_truncate(x, max_len=max_len) for x in list(v)[:80]]
        if len(v) > 80:
            items.append({"_truncated_items": len(v) - 80})
        return items
    return _truncate(str(v), max_len=max_len)


def _pick_log_file(*, ts: Optional[float] = None) -> Path:
    d = log_dir()
    d.mkdir(parents=True, exist_ok=True)
    prefix = _today_prefix(ts)
    base = d / f"{prefix}.ndjson"
    max_b = config.log_max_bytes()

    if not base.exists():
        return base
    try:
        if base.stat().st_size < max_b:
            return base
    except OSError:
        return base

    # Size exceeded; pick next suffix.
    for i in range(1, 1000):
        p = d / f"{prefix}.{i}.ndjson"
        if not p.exists():
            return p
        try:
            if p.stat().st_size < max_b:
                return p
        except OSError:
            return p
    return base


def _prune_old_files() -> None:
    d = log_dir()
    if not d.exists():
        return
    cutoff = datetime.now() - timedelta(days=config.log_retention_days())
    for p in d.glob(f"{LOG_PREFIX}-*.ndjson"):
        try:
            mtime = datetime.fromtimestamp(p.stat().st_mtime)
            if mtime < cutoff:
                p.unlink(missing_ok=True)
        except OSError:
            continue


def _rotation_key(p: Path) -> tuple[str, int]:
    # relay-YYYY-MM-DD.ndjson is rotation 0, relay-YYYY-MM-DD.N.ndjson is rotation N.
    stem = p.name[: -len(".ndjson")]
    day, _, suffix = stem.partition(".")
    return day, int(suffix) if suffix.isdigit() else 0


def log_files() -> list[Path]:
    """Newest first: by day, then by rotation number."""
    d = log_dir()
    if not d.exists():
        return []
    return sorted(d.glob(f"{LOG_PREFIX}-*.ndjson"), key=_rotation_key, reverse=True)


def init_logging() -> None:
    """
    Best-effort init: ensure log dir exists and prune old files.
    """
    with _lock:
        log_dir().mkdir(parents=True, exist_ok=True)
        _prune_old_files()


def log_event(
    *,
    level: str,
    event: str,
    data: Optional[dict[str, Any]] = None,
    sessionId: Optional[str] = None,
) -> None:
    """
    Append a single structured NDJSON record.
    Callers pass sizes/previews of client text, not full payloads.
    """
    ts_ms = int(time.time() * 1000)
    rec: dict[str, Any] = {
        "ts": ts_ms,
        "level": level,
        "event": event,
    }
    if sessionId:
        rec["sessionId"] = sessionId
    if data:
        rec["data"] = _truncate(data)

    line = json.dumps(rec, ensure_ascii=False)
    with _lock:
        try:
            _prune_old_files()
            p = _pick_log_file()
            with open(p, "a", encoding="utf-8") as f:
                f.write(line + "\n")
        except Exception:
            # Logging must never take the relay down.
            pass
