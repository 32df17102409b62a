"""
Cross-process locking for the JSON document store.

Keys: lock:users, etc. Uses file-based locks so every uvicorn worker process
serializes its read-modify-write of a store file.
"""

from __future__ import annotations

import os
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

LOCK_TIMEOUT_SECONDS = 30
LOCK_POLL_INTERVAL = 0.05
# A lock file older than this is considered left behind by a crashed worker
STALE_LOCK_SECONDS = 60


def _lock_path(locks_dir: Path, key: str) -> Path:
    safe = "".join(c if c.isalnum() or c in "-_" else "_" for c in key)
    locks_dir.mkdir(parents=True, exist_ok=True)
    return locks_dir / f"{safe}.lock"


def _break_if_stale(path: Path) -> None:
    try:
        if time.time() - path.stat().st_mtime > STALE_LOCK_SECONDS:
            path.unlink()
    except FileNotFoundError:
        pass


@contextmanager
def acquire_lock(
    locks_dir: Path,
    key: str,
    timeout_seconds: float = LOCK_TIMEOUT_SECONDS,
) -> Generator[None, None, None]:
    """
    Acquire a named lock (e.g. lock:users).
    File-based; blocks until acquired or timeout.
    """
    path = _lock_path(locks_dir, key)
    start = time.monotonic()
    while True:
        try:
            fd = os.open(str(path), os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            if (time.monotonic() - start) >= timeout_seconds:
                raise TimeoutError(f"Could not acquire lock {key} within {timeout_seconds}s")
            _break_if_stale(path)
            time.sleep(LOCK_POLL_INTERVAL)
            continue
        try:
            os.write(fd, str(os.getpid()).encode())
        finally:
            os.close(fd)
        break
    try:
        yield
    finally:
        try:
            path.unlink()
        except FileNotFoundError:
            pass
