"""Linear backoff helpers."""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Mapping


@dataclass
class RetryPolicy:
    """Bounded retry schedule where attempt ``n`` waits ``base_delay_ms * n``."""

    max_attempts: int
    base_delay_ms: int
    max_delay_ms: int = 60000

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay_ms < 0:
            raise ValueError("base_delay_ms must not be negative")

    @classmethod
    def from_settings(cls, cfg: Mapping[str, Any]) -> "RetryPolicy":
        return cls(
            max_attempts=int(cfg.get("max_attempts", 4)),
            base_delay_ms=int(cfg.get("base_delay_ms", 800)),
            max_delay_ms=int(cfg.get("max_delay_ms", 60000)),
        )

    def compute_delay(self, attempt: int) -> float:
        """Seconds to wait after the failed attempt number ``attempt`` (1-based)."""
        delay_ms = min(self.max_delay_ms, self.base_delay_ms * max(attempt, 1))
        return delay_ms / 1000

    def total_delay(self) -> float:
        """Seconds slept in total when every attempt fails."""
        return sum(self.compute_delay(n) for n in range(1, self.max_attempts))


def sleep_with_backoff(attempt: int, retry_policy: RetryPolicy) -> None:
    """Utility for manual backoff."""
    time.sleep(retry_policy.compute_delay(attempt))
