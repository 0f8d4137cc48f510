from __future__ import annotations

from pydantic import BaseModel, Field


class DesiredStateModel(BaseModel):
    service: str = Field(..., description="Service label value (dns-safe)")
    image: str = Field(..., description="Docker image (name:tag); also the replicas' version label")
    replicas: int = Field(..., ge=0, description="Desired number of running replicas")


class TickResultModel(BaseModel):
    action: str = Field(..., description="noop|cleanup|scale-up|scale-down|rolling-update|backoff")
    running: int
    dead: int
    in_backoff: bool
    spawned: list[str] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)
    finished_at: str


class BackoffModel(BaseModel):
    failures: int = Field(..., ge=0)
    last_failure: float | None = Field(None, description="Monotonic clock reading of the latest failure")
    in_backoff: bool


class StatusResponse(BaseModel):
    desired: DesiredStateModel
    backoff: BackoffModel
    ticks: int = 0
    last_result: TickResultModel | None = None
    last_error: str | None = None
    last_error_at: str | None = None


class EventModel(BaseModel):
    id: int
    ts: str
    level: str
    service_name: str | None = None
    version: str | None = None
    message: str
