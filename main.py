from __future__ import annotations

from dataclasses import asdict

from fastapi import FastAPI, HTTPException, Query

from lsr.api_models import BackoffModel, DesiredStateModel, EventModel, StatusResponse, TickResultModel
from lsr.db import init_db, latest_events, log_event
from lsr.docker_ops import RuntimeClientError, connect_runtime
from lsr.observer import RuntimeQueryError
from lsr.reconciler import Reconciler
from lsr.replicas import RemovalError, SpawnError
from lsr.runtime import DesiredState
from lsr.settings import settings

app = FastAPI(title="Label-scoped Service Reconciler")

# Built at startup; tests may install their own before the app starts.
reconciler: Reconciler | None = None

TICK_ERRORS = (RuntimeQueryError, SpawnError, RemovalError, RuntimeClientError)


def build_reconciler() -> Reconciler:
    """Connect to Docker (retrying until it answers) and wire the loop."""
    desired = DesiredState(service=settings.service, image=settings.image, replicas=settings.replicas)
    runtime = connect_runtime()
    return Reconciler(runtime, desired)


def _get_reconciler() -> Reconciler:
    if reconciler is None:
        raise HTTPException(status_code=503, detail="Reconciler not started")
    return reconciler


@app.on_event("startup")
def startup() -> None:
    global reconciler
    init_db()
    if reconciler is None:
        reconciler = build_reconciler()
    reconciler.start()


@app.on_event("shutdown")
def shutdown() -> None:
    if reconciler is not None:
        reconciler.stop()


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "healthy"}


@app.get("/status", response_model=StatusResponse)
def status() -> StatusResponse:
    rec = _get_reconciler()
    snap = rec.state.snapshot()
    return StatusResponse(
        desired=DesiredStateModel(**asdict(rec.desired)),
        backoff=BackoffModel(**asdict(rec.backoff.snapshot())),
        ticks=snap["ticks"],
        last_result=TickResultModel(**snap["last_result"]) if snap["last_result"] else None,
        last_error=snap["last_error"],
        last_error_at=snap["last_error_at"],
    )


@app.get("/events", response_model=list[EventModel])
def events(limit: int = Query(100, ge=1, le=1000)) -> list[EventModel]:
    return [EventModel(**e) for e in latest_events(limit)]


@app.post("/reconcile", response_model=TickResultModel)
def reconcile() -> TickResultModel:
    rec = _get_reconciler()
    try:
        result = rec.tick()
    except TICK_ERRORS as e:
        msg = f"{type(e).__name__}: {e}"
        rec.state.record_error(msg)
        log_event("ERROR", f"Manual reconcile failed: {msg}", service_name=rec.desired.service)
        raise HTTPException(status_code=502, detail=msg)
    return TickResultModel(**asdict(result))
