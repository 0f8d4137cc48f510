from __future__ import annotations

import time
from typing import Callable

from .db import log_event
from .replicas import ReplicaManager


def rolling_update(
    replicas: ReplicaManager,
    outdated: list[str],
    settle_delay_s: float = 3.0,
    sleep: Callable[[float], None] = time.sleep,
) -> list[tuple[str, str]]:
    """Replace each outdated replica, one at a time, spawning before killing.

    For every old id: start a fresh replica, give it `settle_delay_s` to come
    up, then remove the old one. The service runs one replica over its
    desired count during each step instead of one under.

    The first failure aborts the remaining steps and propagates. Steps that
    already completed are kept; the next tick's drift check picks up the rest.
    Returns the (old_id, new_id) pairs that were replaced.
    """
    service = replicas.desired.service
    image = replicas.desired.image
    plan = list(outdated)
    log_event("INFO", f"Rolling update of {len(plan)} replica(s) to {image}", service_name=service, version=image)

    replaced: list[tuple[str, str]] = []
    for old_id in plan:
        new_id = replicas.spawn()
        sleep(max(0.0, settle_delay_s))
        replicas.graceful_remove(old_id)
        replaced.append((old_id, new_id))

    log_event("INFO", f"Rolling update completed ({len(replaced)} replaced)", service_name=service, version=image)
    return replaced
