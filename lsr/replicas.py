from __future__ import annotations

import secrets

from .db import log_event
from .docker_ops import CreateError, RemoveError, RuntimeClientError, StartError
from .observer import MANAGED_BY_LABEL, SERVICE_LABEL, VERSION_LABEL
from .runtime import DesiredState


MANAGED_BY = "lsr"

# We do self-healing ourselves; keep Docker's restart policy off.
DEFAULT_HOST_CONFIG = {"restart_policy": {"Name": "no"}}


class SpawnError(Exception):
    pass


class RemovalError(Exception):
    pass


class ReplicaManager:
    """Creates, starts, stops and removes single replicas of the service."""

    def __init__(self, runtime, desired: DesiredState, stop_grace_s: int = 5):
        self.runtime = runtime
        self.desired = desired
        self.stop_grace_s = max(0, int(stop_grace_s))

    def labels(self) -> dict[str, str]:
        return {
            SERVICE_LABEL: self.desired.service,
            MANAGED_BY_LABEL: MANAGED_BY,
            VERSION_LABEL: self.desired.image,
        }

    def new_name(self) -> str:
        return f"{self.desired.service}-{secrets.token_hex(6)}"

    def spawn(self) -> str:
        """Create and start one replica. Returns its container id.

        A container that was created but failed to start is left behind;
        the next tick classifies it as dead and removes it.
        """
        name = self.new_name()
        try:
            container_id = self.runtime.create(name, self.desired.image, self.labels(), dict(DEFAULT_HOST_CONFIG))
            self.runtime.start(container_id)
        except (CreateError, StartError) as e:
            raise SpawnError(str(e)) from e
        log_event(
            "INFO",
            f"Started replica {name} ({container_id[:12]}) from image {self.desired.image}",
            service_name=self.desired.service,
            version=self.desired.image,
        )
        return container_id

    def graceful_remove(self, container_id: str) -> None:
        try:
            self.runtime.stop(container_id, self.stop_grace_s)
        except RuntimeClientError:
            # May already be stopped.
            pass
        try:
            self.runtime.remove(container_id, force=True)
        except RemoveError as e:
            raise RemovalError(str(e)) from e
        log_event("INFO", f"Removed replica {container_id[:12]}", service_name=self.desired.service)
