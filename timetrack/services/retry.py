"""
Bounded retry for transient store faults.

Only StorageUnavailable is retried. Conflicts and every other domain error are
authoritative and returned to the caller on the first occurrence.
"""
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, TypeVar

from ..config import Settings
from ..errors import StorageUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff for store calls."""

    max_retries: int = 3
    base_delay_ms: int = 50
    max_delay_ms: int = 1000
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False, compare=False)
    clock: Callable[[], float] = field(default=time.monotonic, repr=False, compare=False)

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(max_retries=settings.store_max_retries, base_delay_ms=settings.store_retry_base_delay_ms)

    def backoff(self, attempt: int) -> float:
        """Delay in seconds before the given retry attempt (0-based)."""
        return min(self.max_delay_ms, (2 ** attempt) * self.base_delay_ms) / 1000

    def call(self, operation: str, func: Callable[[], T], deadline: Optional[float] = None) -> T:
        """
        Run a store call, retrying transient failures.

        Args:
            operation: Name used in log messages
            func: Zero-argument callable performing the store call
            deadline: Monotonic time after which no further attempt is started

        Returns:
            Whatever func returns

        Raises:
            StorageUnavailable: If every attempt failed or the deadline passed
        """
        for attempt in range(self.max_retries + 1):
            try:
                return func()
            except StorageUnavailable as exc:
                if attempt >= self.max_retries:
                    logger.error(f"{operation} failed after {attempt + 1} attempts: {exc}")
                    raise
                delay = self.backoff(attempt)
                if deadline is not None and self.clock() + delay >= deadline:
                    logger.error(f"{operation} gave up at deadline after {attempt + 1} attempts: {exc}")
                    raise
                logger.warning(f"{operation} hit a transient store fault, retry in {delay:.3f}s (attempt {attempt + 1})")
                self.sleep(delay)
        raise StorageUnavailable(f"{operation} failed")
