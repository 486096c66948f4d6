"""
Exponential backoff for put-records retries.

``BackoffProfile`` is the immutable configuration and exposes the pure step
function ``next_backoff(current) -> (sleep, next)``. ``BackoffTimer`` holds the
per-call state (current interval, start time) and is created fresh for every
retried call.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, Optional


@dataclass(frozen=True)
class BackoffProfile:
    """Exponential backoff parameters (all intervals in milliseconds)."""

    initial_interval_ms: int = 100
    multiplier: float = 2.0
    max_interval_ms: int = 30_000
    max_elapsed_ms: Optional[int] = None  # None = no elapsed-time budget

    def __post_init__(self) -> None:
        if self.initial_interval_ms <= 0:
            raise ValueError("initial_interval_ms must be > 0")
        if self.multiplier < 1.0:
            raise ValueError("multiplier must be >= 1.0")
        if self.max_interval_ms < self.initial_interval_ms:
            raise ValueError("max_interval_ms must be >= initial_interval_ms")
        if self.max_elapsed_ms is not None and self.max_elapsed_ms < 0:
            raise ValueError("max_elapsed_ms must be >= 0")

    def next_backoff(self, current_interval_ms: int) -> tuple[int, int]:
        """
        One backoff step.

        Args:
            current_interval_ms: Interval to sleep for now

        Returns:
            (sleep_ms, next_interval_ms), both capped at ``max_interval_ms``
        """
        sleep_ms = min(current_interval_ms, self.max_interval_ms)
        next_ms = min(int(current_interval_ms * self.multiplier), self.max_interval_ms)
        return sleep_ms, next_ms

    def timer(self, clock: Callable[[], float] = time.monotonic) -> "BackoffTimer":
        return BackoffTimer(profile=self, clock=clock)


@dataclass
class BackoffTimer:
    """Per-call backoff state. Not shared between calls."""

    profile: BackoffProfile
    clock: Callable[[], float] = time.monotonic
    current_interval_ms: int = field(init=False)
    started_at: float = field(init=False)

    def __post_init__(self) -> None:
        self.current_interval_ms = self.profile.initial_interval_ms
        self.started_at = self.clock()

    def reset(self) -> None:
        """Back to the initial interval (the elapsed-time budget keeps running)."""
        self.current_interval_ms = self.profile.initial_interval_ms

    def elapsed_ms(self) -> float:
        return (self.clock() - self.started_at) * 1000.0

    def next_sleep_ms(self) -> Optional[int]:
        """Next sleep in ms, or None once the elapsed-time budget is spent."""
        budget = self.profile.max_elapsed_ms
        if budget is not None and self.elapsed_ms() >= budget:
            return None
        sleep_ms, self.current_interval_ms = self.profile.next_backoff(self.current_interval_ms)
        return sleep_ms
