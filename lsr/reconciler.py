from __future__ import annotations

import time
from threading import Event, Lock, Thread
from typing import Callable

from . import db
from .alerts import send_backoff_alert
from .backoff import BackoffTracker
from .observer import ClassifiedInventory, ReplicaRecord, observe, with_version
from .replicas import ReplicaManager
from .rollouts import rolling_update
from .runtime import DesiredState, RuntimeState, TickResult, utc_now
from .settings import settings


class Reconciler:
    """Continuously drives the labeled containers toward the desired state."""

    def __init__(
        self,
        runtime,
        desired: DesiredState,
        backoff: BackoffTracker | None = None,
        state: RuntimeState | None = None,
        interval_s: float | None = None,
        stop_grace_s: int | None = None,
        settle_delay_s: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.runtime = runtime
        self.desired = desired
        self.backoff = backoff or BackoffTracker(
            threshold=settings.failure_threshold,
            duration=settings.backoff_s,
            reset_window=settings.failure_reset_s,
        )
        self.state = state or RuntimeState()
        self.interval_s = settings.poll_interval_s if interval_s is None else interval_s
        self.settle_delay_s = settings.settle_delay_s if settle_delay_s is None else settle_delay_s
        self.replicas = ReplicaManager(
            runtime,
            desired,
            stop_grace_s=settings.stop_grace_s if stop_grace_s is None else stop_grace_s,
        )
        self.sleep = sleep
        self._tick_lock = Lock()
        self._stop = Event()
        self._thr: Thread | None = None
        self.last_failure_at: str | None = None
        self._last_observed: tuple[int, int, int, bool] | None = None

    def start(self) -> None:
        if self._thr and self._thr.is_alive():
            return
        self._stop.clear()
        self._thr = Thread(target=self.run_forever, daemon=True)
        self._thr.start()

    def stop(self) -> None:
        self._stop.set()

    def run_forever(self) -> None:
        db.log_event("INFO", "Reconciler started", service_name=self.desired.service, version=self.desired.image)
        while not self._stop.is_set():
            self.run_once()
            self._stop.wait(max(0.1, self.interval_s))
        db.log_event("INFO", "Reconciler stopped", service_name=self.desired.service)

    def run_once(self) -> TickResult | None:
        """One tick with the loop's error policy: log, record, carry on."""
        try:
            return self.tick()
        except Exception as e:
            msg = f"{type(e).__name__}: {e}"
            self.state.record_error(msg)
            db.log_event("ERROR", f"Reconciler tick failed: {msg}", service_name=self.desired.service)
            return None

    def tick(self) -> TickResult:
        with self._tick_lock:
            result = self._tick()
        self.state.record_result(result)
        return result

    def _tick(self) -> TickResult:
        service = self.desired.service
        inv = observe(self.runtime, service)
        # Entries without an id cannot be inspected or removed.
        running = [cid for cid in inv.running if cid]
        dead = [cid for cid in inv.dead if cid]
        if len(running) + len(dead) < len(inv.running) + len(inv.dead):
            db.log_event("WARN", "Ignoring listed container(s) without an id", service_name=service)

        was_backing_off = self.backoff.in_backoff()
        if dead:
            self.backoff.register_failure()
            self.last_failure_at = utc_now()
        else:
            failures = self.backoff.failures
            if self.backoff.maybe_reset():
                db.log_event("INFO", "Failure counter reset after quiet period", service_name=service)
                self._alert(False, failures)
        in_backoff = self.backoff.in_backoff()
        if in_backoff and not was_backing_off:
            db.log_event(
                "WARN",
                f"Respawn backoff engaged after {self.backoff.failures} consecutive failing ticks",
                service_name=service,
            )
            self._alert(True, self.backoff.failures)

        observed = (len(running), len(dead), self.backoff.failures, in_backoff)
        if observed != self._last_observed:
            db.log_event(
                "INFO",
                f"Observed running={len(running)} dead={len(dead)} "
                f"failures={self.backoff.failures} backoff={in_backoff}",
                service_name=service,
            )
            self._last_observed = observed

        removed: list[str] = []
        for container_id in dead:
            self.replicas.graceful_remove(container_id)
            removed.append(container_id)

        outdated = self._outdated(inv, running)
        if outdated:
            drift = ", ".join(f"{r.id[:12]}={r.version or '?'}" for r in outdated)
            db.log_event(
                "INFO",
                f"Version drift on {len(outdated)} of {len(running)} replica(s): {drift}",
                service_name=service,
                version=self.desired.image,
            )
            replaced = rolling_update(self.replicas, running, self.settle_delay_s, sleep=self.sleep)
            return TickResult(
                action="rolling-update",
                running=len(running),
                dead=len(dead),
                in_backoff=in_backoff,
                spawned=[new for _, new in replaced],
                removed=removed + [old for old, _ in replaced],
            )

        desired = self.desired.replicas
        to_spawn = max(0, desired - len(running))
        to_kill = max(0, len(running) - desired)

        if to_spawn:
            if in_backoff:
                db.log_event(
                    "WARN",
                    f"In backoff; skipping spawn of {to_spawn} replica(s) this tick",
                    service_name=service,
                )
                return TickResult("backoff", len(running), len(dead), in_backoff, removed=removed)
            spawned: list[str] = []
            for _ in range(to_spawn):
                spawned.append(self.replicas.spawn())
            return TickResult("scale-up", len(running), len(dead), in_backoff, spawned=spawned, removed=removed)

        if to_kill:
            for container_id in running[:to_kill]:
                self.replicas.graceful_remove(container_id)
                removed.append(container_id)
            return TickResult("scale-down", len(running), len(dead), in_backoff, removed=removed)

        action = "cleanup" if removed else "noop"
        return TickResult(action, len(running), len(dead), in_backoff, removed=removed)

    def _outdated(self, inv: ClassifiedInventory, running: list[str]) -> list[ReplicaRecord]:
        records = [with_version(self.runtime, inv.records.get(cid) or ReplicaRecord(cid, "", "")) for cid in running]
        return [r for r in records if r.version != self.desired.image]

    def _alert(self, engaged: bool, failures: int) -> None:
        send_backoff_alert(self.desired.service, self.desired.image, engaged, failures, self.last_failure_at)
