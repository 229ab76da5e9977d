"""Chunk identifiers used as upsert keys in the vector store.

Ids have the form ``{namespace}-{timestamp_ms}-{index}``. Every id of one
call shares a timestamp; successive calls in this process always get a
strictly later timestamp, even within the same clock millisecond.
"""

import threading
import time

_lock = threading.Lock()
_last_timestamp = 0


def _next_timestamp() -> int:
    global _last_timestamp
    with _lock:
        now = time.time_ns() // 1_000_000
        _last_timestamp = max(now, _last_timestamp + 1)
        return _last_timestamp


def build_ids(count: int, namespace: str) -> list[str]:
    """Generate ``count`` unique ids for one ingestion batch.

    Args:
        count: Number of chunks in the batch.
        namespace: Logical partition the chunks belong to.

    Returns:
        Ids ordered by their index suffix, starting at 0.
    """
    if count < 0:
        raise ValueError("count must be non-negative")
    timestamp = _next_timestamp()
    return [f"{namespace}-{timestamp}-{index}" for index in range(count)]
