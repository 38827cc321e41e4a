"""
Rate-limit retry policy.

Every call to the hosted entity API goes through one shared
:class:`RetryPolicy`. Only :class:`~app.domain.exceptions.RateLimitError`
is retried, with exponential backoff; any other exception propagates on the
first attempt.

Usage::

    policy = RetryPolicy(max_retries=3, base_delay_ms=1000)
    devices = policy.call(client.list, "VRDevice")

    @policy.wrap
    def load_devices():
        return client.list("VRDevice")
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from functools import wraps
from typing import Any, Callable, TypeVar

from app.constants import Retry
from app.domain.exceptions import RateLimitError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """Retry-on-rate-limit with exponential backoff.

    Attributes:
        max_retries: Retries after the first attempt
        base_delay_ms: Delay before the first retry
        factor: Multiplier applied to the delay after each retry
        sleep: Sleep function (injected in tests)
    """

    max_retries: int = Retry.MAX_RETRIES
    base_delay_ms: int = Retry.BASE_DELAY_MS
    factor: float = Retry.BACKOFF_FACTOR
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait before retry number ``attempt`` (0-based)."""
        return self.base_delay_ms * (self.factor**attempt) / 1000.0

    def call(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run ``func`` and retry it while it raises RateLimitError."""
        attempt = 0
        while True:
            try:
                return func(*args, **kwargs)
            except RateLimitError as e:
                if attempt >= self.max_retries:
                    logger.error(
                        "Rate limit persisted after %d retries for %s: %s",
                        self.max_retries,
                        getattr(func, "__name__", func),
                        e,
                    )
                    raise
                delay = self.delay_for(attempt)
                attempt += 1
                logger.warning(
                    "Rate limit hit, retrying in %.0fms (attempt %d/%d)",
                    delay * 1000,
                    attempt,
                    self.max_retries,
                )
                self.sleep(delay)

    def wrap(self, func: Callable[..., T]) -> Callable[..., T]:
        """Decorator form of :meth:`call`."""

        @wraps(func)
        def _wrapped(*args: Any, **kwargs: Any) -> T:
            return self.call(func, *args, **kwargs)

        return _wrapped


def no_retry() -> RetryPolicy:
    """Policy that never retries; for offline stores."""
    return RetryPolicy(max_retries=0, base_delay_ms=0)
