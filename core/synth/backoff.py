"""Retry intervals for transient provider failures."""

from __future__ import annotations

import random

from pydantic import Field
from pydantic.dataclasses import dataclass


@dataclass
class ExponentialBackoff:
    """
    Exponential backoff with optional jitter for retrying provider calls.

    Each call to next_backoff() returns the wait before the next attempt and
    grows the base interval by `multiplier`, capped at `max_interval`.
    With `randomization_factor` r the returned value is drawn from
    [interval * (1 - r), interval * (1 + r)].

    next_backoff() returns 0 once `max_retries` is exceeded; callers treat 0
    as "give up". The instance is not thread-safe, keep one per resource.
    """

    initial_interval: float = Field(0.5, title="Initial backoff interval in seconds", gt=0)
    randomization_factor: float = Field(0.0, title="Factor to randomize backoff", ge=0, le=1)
    multiplier: float = Field(2.0, title="Multiply interval by this factor each retry", gt=1)
    max_interval: float = Field(20.0, title="Maximum backoff interval in seconds", gt=0)
    max_retries: int = Field(3, title="Max retry attempts (-1 for unlimited)", ge=-1)

    def __post_init__(self):
        self.retry_interval: float = 0
        self.retries: int = 0

    def reset(self) -> None:
        self.retry_interval = 0
        self.retries = 0

    def next_backoff(self) -> float:
        if self.retry_interval == 0:
            self.retry_interval = self.initial_interval

        self.retries += 1

        if self.max_retries >= 0 and self.retries > self.max_retries:
            return 0

        next_interval = self.retry_interval
        if 0 < self.randomization_factor <= 1:
            min_interval = self.retry_interval * (1 - self.randomization_factor)
            max_interval = self.retry_interval * (1 + self.randomization_factor)
            next_interval = random.uniform(min_interval, max_interval)

        self.retry_interval = min(self.max_interval, self.retry_interval * self.multiplier)

        return next_interval
