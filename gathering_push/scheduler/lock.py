"""Process-local locks for the push pipeline.

The run lock keeps scheduled processor runs from overlapping: the interval
job and the cron endpoint both take it with a non-blocking acquire, so a
second caller gets False and skips (or answers 409).

Key locks serialize notification writes for the same (rule kind, gathering)
between a scheduled run and manual triggers handled by the same process.
Neither lock spans processes; run the scheduler on a single instance.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Tuple
from uuid import UUID

_run_lock = threading.Lock()
_current_run_id: UUID | None = None

# One lock per (rule kind, gathering) key, never evicted; bounded by the number of gatherings.
_key_locks: Dict[Tuple[str, str], threading.Lock] = {}
_key_locks_guard = threading.Lock()


def acquire_run_lock(run_id: UUID) -> bool:
    """Try to acquire the run lock. Returns False if a run is already in progress."""
    global _current_run_id
    if _run_lock.acquire(blocking=False):
        _current_run_id = run_id
        return True
    return False


def release_run_lock() -> None:
    """Release the run lock. Safe to call when it is not held."""
    global _current_run_id
    _current_run_id = None
    try:
        _run_lock.release()
    except RuntimeError:
        pass  # Already released


def is_run_in_progress() -> bool:
    return _current_run_id is not None


@contextmanager
def key_lock(rule_kind: str, gathering_uid: str) -> Iterator[None]:
    """Hold the write lock for one (rule kind, gathering) notification key."""
    key = (rule_kind, gathering_uid)
    with _key_locks_guard:
        lock = _key_locks.setdefault(key, threading.Lock())
    with lock:
        yield
