"""Bounded exponential backoff for transient provider errors."""

import time
from typing import Callable, Optional, Tuple, TypeVar
from ..config.settings import RetrySettings
from ..utils.errors import ProviderError
from ..utils.logging import get_logger

logger = get_logger("execution.retry")

T = TypeVar("T")


class RetryPolicy:
    """Retries transient ProviderErrors; everything else propagates at once."""

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 0.5,
        max_delay: float = 8.0,
        multiplier: float = 2.0,
        sleep: Callable[[float], None] = time.sleep
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.multiplier = multiplier
        self.sleep = sleep

    @classmethod
    def from_settings(cls, settings: RetrySettings, sleep: Optional[Callable[[float], None]] = None) -> "RetryPolicy":
        return cls(
            max_attempts=settings.max_attempts,
            base_delay=settings.base_delay_seconds,
            max_delay=settings.max_delay_seconds,
            multiplier=settings.multiplier,
            sleep=sleep or time.sleep
        )

    def delay_for(self, attempt: int) -> float:
        """Delay after the given failed attempt (1-based)."""
        return min(self.max_delay, self.base_delay * (self.multiplier ** (attempt - 1)))

    def call(self, fn: Callable[[], T], description: str) -> Tuple[T, int]:
        """
        Run fn until it succeeds, fails permanently or attempts run out.

        Returns:
            (result, attempts used)

        Raises:
            ProviderError: The last error, with an 'attempts' attribute set
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                return fn(), attempt
            except ProviderError as e:
                e.attempts = attempt
                if not e.transient or attempt >= self.max_attempts:
                    raise
                delay = self.delay_for(attempt)
                logger.warning(
                    f"Transient error on {description} "
                    f"(attempt {attempt}/{self.max_attempts}): {e}; retrying in {delay:.2f}s"
                )
                self.sleep(delay)
