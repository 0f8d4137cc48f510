from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Any

from .docker_ops import validate_service_name


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass(frozen=True)
class DesiredState:
    service: str
    image: str
    replicas: int

    def __post_init__(self) -> None:
        validate_service_name(self.service)
        if not self.image:
            raise ValueError("image must not be empty")
        if int(self.replicas) < 0:
            raise ValueError("replicas must be >= 0")


@dataclass
class TickResult:
    action: str  # noop|cleanup|scale-up|scale-down|rolling-update|backoff
    running: int
    dead: int
    in_backoff: bool
    spawned: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    finished_at: str = field(default_factory=utc_now)


class RuntimeState:
    """In-memory view of the loop, read by the API thread."""

    def __init__(self) -> None:
        self.lock = Lock()
        self.ticks = 0
        self.last_result: TickResult | None = None
        self.last_error: str | None = None
        self.last_error_at: str | None = None

    def record_result(self, result: TickResult) -> None:
        with self.lock:
            self.ticks += 1
            self.last_result = result
            self.last_error = None
            self.last_error_at = None

    def record_error(self, message: str) -> None:
        with self.lock:
            self.ticks += 1
            self.last_error = message
            self.last_error_at = utc_now()

    def snapshot(self) -> dict[str, Any]:
        with self.lock:
            return {
                "ticks": self.ticks,
                "last_result": asdict(self.last_result) if self.last_result else None,
                "last_error": self.last_error,
                "last_error_at": self.last_error_at,
            }
