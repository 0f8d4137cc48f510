from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable


@dataclass(frozen=True)
class BackoffSnapshot:
    failures: int
    last_failure: float | None
    in_backoff: bool


class BackoffTracker:
    """Counts consecutive failing ticks and gates respawning.

    A tick "fails" when it observes dead replicas. Once `threshold` failures
    pile up, respawns are suppressed until `duration` seconds have passed
    since the latest one. The counter clears after `reset_window` seconds
    without a failure. Only scale-up is gated; cleanup and scale-down
    always run.
    """

    def __init__(
        self,
        threshold: int = 5,
        duration: float = 30.0,
        reset_window: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.threshold = max(1, int(threshold))
        self.duration = float(duration)
        self.reset_window = float(reset_window)
        self.clock = clock
        self.failures = 0
        self.last_failure: float | None = None

    def register_failure(self) -> None:
        self.failures += 1
        self.last_failure = self.clock()

    def maybe_reset(self) -> bool:
        """Clear the counter after a quiet period. Returns True if it did."""
        if self.last_failure is None:
            return False
        if self.clock() - self.last_failure > self.reset_window:
            self.failures = 0
            self.last_failure = None
            return True
        return False

    def in_backoff(self) -> bool:
        if self.last_failure is None:
            return False
        if self.failures < self.threshold:
            return False
        return self.clock() - self.last_failure < self.duration

    def snapshot(self) -> BackoffSnapshot:
        return BackoffSnapshot(failures=self.failures, last_failure=self.last_failure, in_backoff=self.in_backoff())
