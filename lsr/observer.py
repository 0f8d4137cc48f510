from __future__ import annotations

from dataclasses import dataclass, field, replace

from .docker_ops import QueryError
from .health import is_running


SERVICE_LABEL = "service"
MANAGED_BY_LABEL = "managed-by"
VERSION_LABEL = "version"


class RuntimeQueryError(Exception):
    pass


@dataclass(frozen=True)
class ReplicaRecord:
    id: str
    state: str
    status: str
    version: str | None = None


@dataclass(frozen=True)
class ClassifiedInventory:
    running: list[str] = field(default_factory=list)
    dead: list[str] = field(default_factory=list)
    records: dict[str, ReplicaRecord] = field(default_factory=dict)

    @property
    def running_count(self) -> int:
        return len(self.running)

    @property
    def dead_count(self) -> int:
        return len(self.dead)


def label_filter(service: str) -> str:
    return f"{SERVICE_LABEL}={service}"


def classify(records: list[ReplicaRecord]) -> ClassifiedInventory:
    running: list[str] = []
    dead: list[str] = []
    for r in records:
        if is_running(r.state, r.status):
            running.append(r.id)
        else:
            dead.append(r.id)
    return ClassifiedInventory(running=running, dead=dead, records={r.id: r for r in records})


def observe(runtime, service: str) -> ClassifiedInventory:
    """List every container labeled for the service and split it into running/dead."""
    try:
        raw = runtime.list(label_filter(service))
    except QueryError as e:
        raise RuntimeQueryError(str(e)) from e
    records = [
        ReplicaRecord(
            id=str(c.get("id") or ""),
            state=str(c.get("state") or ""),
            status=str(c.get("status") or ""),
        )
        for c in raw
    ]
    return classify(records)


def version_of(runtime, container_id: str) -> str | None:
    try:
        info = runtime.inspect(container_id)
    except QueryError as e:
        raise RuntimeQueryError(str(e)) from e
    return (info.get("labels") or {}).get(VERSION_LABEL)


def with_version(runtime, record: ReplicaRecord) -> ReplicaRecord:
    """Return the record with its version label filled in from an inspect call."""
    return replace(record, version=version_of(runtime, record.id))
