import logging
import random

logger = logging.getLogger(__name__)


class RateLimiter:
    """Bounded retry budget with exponential backoff and jitter.

    One instance tracks a single logical call: backoff() is consulted after
    each transient failure, reset() after the call finishes.
    """

    def __init__(
        self,
        max_retries: int = 3,
        initial_delay: float = 0.5,
        max_delay: float = 8.0,
        backoff_factor: float = 2.0,
        jitter_factor: float = 0.1,
    ):
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.backoff_factor = backoff_factor
        self.jitter_factor = jitter_factor
        self._current_delay = initial_delay
        self._consecutive_errors = 0

    def reset(self) -> None:
        """Reset delay after a finished call."""
        self._current_delay = self.initial_delay
        self._consecutive_errors = 0

    @property
    def consecutive_errors(self) -> int:
        return self._consecutive_errors

    @property
    def exhausted(self) -> bool:
        """True once every allowed retry has been spent."""
        return self._consecutive_errors >= self.max_retries

    def backoff(self) -> float:
        """Record a failure and return the delay before the next attempt.

        The first retry waits initial_delay; each later one grows by
        backoff_factor up to max_delay.
        """
        if self._consecutive_errors > 0:
            self._current_delay = min(self._current_delay * self.backoff_factor, self.max_delay)
        self._consecutive_errors += 1
        # +/- jitter_factor of the delay
        jitter = self._current_delay * self.jitter_factor * (2 * random.random() - 1)
        return max(0.0, self._current_delay + jitter)
