"""
Bounded batch execution.

Runs one operation per item with a bounded worker pool instead of a single
unbounded burst, so the entity API's rate limiter is not flooded. Each item
is independent: it either fully applies or fails on its own, and nothing is
rolled back. Callers get a :class:`BatchResult` with the successes, the
failures and whether the run was cancelled; never a single boolean.

Cancellation is cooperative: the runner checks a ``threading.Event`` before
dispatching each item. Items already in flight finish normally.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Iterable, TypeVar

from app.constants import Batch

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

ProgressCallback = Callable[[int, int], None]


@dataclass
class BatchSuccess(Generic[T, R]):
    index: int
    item: T
    value: R


@dataclass
class BatchFailure(Generic[T]):
    index: int
    item: T
    error: str
    exception: BaseException | None = field(default=None, repr=False)


@dataclass
class BatchResult(Generic[T, R]):
    """Outcome of a batch run.

    Attributes:
        total: Number of items submitted to the runner
        succeeded: Items whose operation returned, ordered by index
        failed: Items whose operation raised, ordered by index
        cancelled: True when cancellation stopped dispatch early
        not_attempted: Items never dispatched because of cancellation
    """

    total: int = 0
    succeeded: list[BatchSuccess[T, R]] = field(default_factory=list)
    failed: list[BatchFailure[T]] = field(default_factory=list)
    cancelled: bool = False
    not_attempted: int = 0

    @property
    def success_count(self) -> int:
        return len(self.succeeded)

    @property
    def failure_count(self) -> int:
        return len(self.failed)

    @property
    def ok(self) -> bool:
        return not self.failed and not self.cancelled

    @property
    def values(self) -> list[R]:
        return [s.value for s in self.succeeded]

    def summary(self) -> str:
        text = f"{self.success_count} succeeded, {self.failure_count} failed"
        if self.cancelled:
            text += f", {self.not_attempted} not attempted (cancelled)"
        return text

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "succeeded": self.success_count,
            "failed": [{"index": f.index, "error": f.error} for f in self.failed],
            "cancelled": self.cancelled,
            "not_attempted": self.not_attempted,
        }


class BatchRunner:
    """Bounded-concurrency runner with progress reporting and cancellation."""

    def __init__(
        self,
        max_workers: int = Batch.MAX_WORKERS,
        chunk_size: int = Batch.CHUNK_SIZE,
        chunk_pause_ms: int = Batch.CHUNK_PAUSE_MS,
        sleep: Callable[[float], None] = time.sleep,
        name: str = "batch",
    ):
        self.max_workers = max(1, int(max_workers))
        self.chunk_size = max(1, int(chunk_size))
        self.chunk_pause_ms = max(0, int(chunk_pause_ms))
        self._sleep = sleep
        self.name = name

    def run(
        self,
        items: Iterable[T],
        operation: Callable[[T], R],
        *,
        cancel_event: threading.Event | None = None,
        progress: ProgressCallback | None = None,
    ) -> BatchResult[T, R]:
        """
        Apply ``operation`` to every item.

        Args:
            items: Work items
            operation: Called once per item from a worker thread
            cancel_event: Set it to stop dispatching further items
            progress: Called as ``progress(current, total)`` after each finished item

        Returns:
            BatchResult with per-item outcomes
        """
        work = list(items)
        result: BatchResult[T, R] = BatchResult(total=len(work))
        if not work:
            return result

        finished = 0
        next_index = 0
        in_flight: dict[Future, int] = {}

        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix=self.name) as executor:
            while next_index < len(work) or in_flight:
                while next_index < len(work) and len(in_flight) < self.max_workers:
                    if cancel_event is not None and cancel_event.is_set():
                        result.cancelled = True
                        result.not_attempted = len(work) - next_index
                        next_index = len(work)
                        logger.info(
                            "Batch %s cancelled with %d item(s) not attempted",
                            self.name,
                            result.not_attempted,
                        )
                        break
                    future = executor.submit(operation, work[next_index])
                    in_flight[future] = next_index
                    next_index += 1
                    if self.chunk_pause_ms and next_index % self.chunk_size == 0 and next_index < len(work):
                        self._sleep(self.chunk_pause_ms / 1000.0)

                if not in_flight:
                    break

                done, _ = wait(list(in_flight), return_when=FIRST_COMPLETED)
                for future in done:
                    index = in_flight.pop(future)
                    try:
                        value = future.result()
                        result.succeeded.append(BatchSuccess(index=index, item=work[index], value=value))
                    except Exception as e:
                        logger.error("Batch %s item %d failed: %s", self.name, index, e)
                        result.failed.append(BatchFailure(index=index, item=work[index], error=str(e), exception=e))
                    finished += 1
                    if progress is not None:
                        progress(finished, len(work))

        result.succeeded.sort(key=lambda s: s.index)
        result.failed.sort(key=lambda f: f.index)
        logger.info("Batch %s finished: %s", self.name, result.summary())
        return result
