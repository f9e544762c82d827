"""
Retry delay strategies.

The watcher re-subscription and the supervisor restart loop both wait with
exponential backoff; this module holds the shared schedule.
"""

import logging
from typing import Optional

logger = logging.getLogger(__name__)


class ExponentialBackoff:
    """
    Exponential backoff schedule with an upper bound.

    Each call to next_delay() returns the current delay and doubles
    (by ``factor``) the next one, never exceeding ``maximum``.
    """

    def __init__(self, initial: float, maximum: float, factor: float = 2.0,
                 max_attempts: Optional[int] = None):
        if initial <= 0:
            raise ValueError("initial delay must be positive")
        if maximum < initial:
            raise ValueError("maximum delay must be >= initial delay")
        if factor < 1.0:
            raise ValueError("factor must be >= 1.0")
        self.initial = initial
        self.maximum = maximum
        self.factor = factor
        self.max_attempts = max_attempts
        self.attempts = 0
        self._current = initial

    @property
    def exhausted(self) -> bool:
        """True once max_attempts delays have been handed out."""
        return self.max_attempts is not None and self.attempts >= self.max_attempts

    def next_delay(self) -> float:
        delay = self._current
        self.attempts += 1
        self._current = min(self._current * self.factor, self.maximum)
        return delay

    def reset(self) -> None:
        if self.attempts:
            logger.debug(f"Backoff reset after {self.attempts} attempts")
        self.attempts = 0
        self._current = self.initial
