from __future__ import annotations

from collections import deque
from pathlib import Path
from typing import Any

from fastapi import APIRouter, Query

from wsrelay.logging.ndjson import log_dir, log_files

router = APIRouter()

# Only the end of each file is scanned.
_TAIL_WINDOW_BYTES = 512 * 1024


def _last_records(path: Path, n: int) -> list[str]:
    try:
        with open(path, "rb") as f:
            f.seek(0, 2)
            size = f.tell()
            start = max(0, size - _TAIL_WINDOW_BYTES)
            f.seek(start)
            raw = f.read()
    except OSError:
        return []
    lines = raw.decode("utf-8", errors="ignore").splitlines()
    if start > 0 and lines:
        # First line of the window is likely cut in half.
        lines = lines[1:]
    return list(deque((ln for ln in lines if ln.strip()), maxlen=n))


def tail_records(n: int) -> list[str]:
    """The newest `n` NDJSON records across rotated files, oldest first."""
    chunks: list[list[str]] = []
    need = n
    for p in log_files():
        if need <= 0:
            break
        chunk = _last_records(p, need)
        chunks.append(chunk)
        need -= len(chunk)
    return [ln for chunk in reversed(chunks) for ln in chunk]


@router.get("/api/logs/tail")
def get_logs_tail(lines: int = Query(200, ge=1, le=2000)) -> dict[str, Any]:
    records = tail_records(lines)
    return {"dir": str(log_dir()), "lines": records, "count": len(records)}
