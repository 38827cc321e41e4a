"""
Concurrency utilities.

- `synchronized`: decorator that acquires an instance `_lock` if present.
- `gather_reads`: run independent reads concurrently and collect the results.

Reads gathered here are snapshots. Nothing is cached past the call: the
entities can be edited out-of-band, so each operation re-reads.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from functools import wraps
from typing import Any, Callable


def synchronized(func: Callable) -> Callable:
    """Decorator that acquires `self._lock` if present on the instance.

    If no `_lock` attribute exists on `self`, the function is executed
    without locking.
    """

    @wraps(func)
    def _wrapped(*args, **kwargs):
        self = args[0] if args else None
        lock = getattr(self, "_lock", None)
        if lock is None:
            return func(*args, **kwargs)
        with lock:
            return func(*args, **kwargs)

    return _wrapped


def gather_reads(max_workers: int | None = None, **reads: Callable[[], Any]) -> dict[str, Any]:
    """Run independent zero-argument reads in parallel.

    Usage::

        snapshot = gather_reads(devices=device_store.list, entries=schedule_store.list)
        snapshot["devices"]

    The first exception raised by any read propagates to the caller.
    """
    if not reads:
        return {}
    workers = max_workers or len(reads)
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="read") as executor:
        futures = {name: executor.submit(fn) for name, fn in reads.items()}
        return {name: future.result() for name, future in futures.items()}
