from __future__ import annotations

import re
import time
from typing import Any, Callable

import docker
import requests
from docker.errors import DockerException

from .db import log_event
from .settings import settings


SERVICE_NAME_RE = re.compile(r"^[a-z][a-z0-9\-]{0,62}$")

# Per-call deadlines surface from docker-py as requests exceptions.
_CALL_ERRORS = (DockerException, requests.exceptions.RequestException)


class RuntimeClientError(Exception):
    pass


class QueryError(RuntimeClientError):
    pass


class CreateError(RuntimeClientError):
    pass


class StartError(RuntimeClientError):
    pass


class RemoveError(RuntimeClientError):
    pass


def validate_service_name(name: str) -> None:
    if not SERVICE_NAME_RE.match(name):
        raise ValueError(
            "Invalid service name. Use lowercase letters/numbers and hyphen, starting with a letter (max 63 chars)."
        )


def _describe(e: Exception) -> str:
    return f"{type(e).__name__}: {e}"


class DockerRuntime:
    """Thin adapter over docker-py exposing the calls the reconciler needs.

    Every call runs under the client timeout; a timeout is reported the same
    way as any other failure of that call.
    """

    def __init__(self, client: docker.DockerClient):
        self.client = client

    def ping(self) -> bool:
        return bool(self.client.ping())

    def list(self, label_filter: str) -> list[dict[str, str]]:
        try:
            containers = self.client.api.containers(all=True, filters={"label": [label_filter]})
        except _CALL_ERRORS as e:
            raise QueryError(f"list {label_filter!r} failed: {_describe(e)}") from e
        out: list[dict[str, str]] = []
        for c in containers or []:
            out.append(
                {
                    "id": c.get("Id") or "",
                    "state": c.get("State") or "",
                    "status": c.get("Status") or "",
                }
            )
        return out

    def inspect(self, container_id: str) -> dict[str, Any]:
        try:
            attrs = self.client.api.inspect_container(container_id)
        except _CALL_ERRORS as e:
            raise QueryError(f"inspect {container_id} failed: {_describe(e)}") from e
        config = attrs.get("Config") or {}
        return {"labels": dict(config.get("Labels") or {})}

    def create(self, name: str, image: str, labels: dict[str, str], host_config: dict[str, Any] | None = None) -> str:
        try:
            hc = self.client.api.create_host_config(**(host_config or {}))
            resp = self.client.api.create_container(image, name=name, labels=labels, host_config=hc, detach=True)
        except _CALL_ERRORS as e:
            raise CreateError(f"create {name} from {image} failed: {_describe(e)}") from e
        return resp["Id"]

    def start(self, container_id: str) -> None:
        try:
            self.client.api.start(container_id)
        except _CALL_ERRORS as e:
            raise StartError(f"start {container_id} failed: {_describe(e)}") from e

    def stop(self, container_id: str, grace_seconds: int) -> None:
        try:
            self.client.api.stop(container_id, timeout=grace_seconds)
        except _CALL_ERRORS as e:
            raise RuntimeClientError(f"stop {container_id} failed: {_describe(e)}") from e

    def remove(self, container_id: str, force: bool = True) -> None:
        try:
            self.client.api.remove_container(container_id, force=force)
        except _CALL_ERRORS as e:
            raise RemoveError(f"remove {container_id} failed: {_describe(e)}") from e


def _client() -> docker.DockerClient:
    return docker.from_env(timeout=settings.docker_timeout_s)


def connect_runtime(
    factory: Callable[[], docker.DockerClient] = _client,
    retry_s: float | None = None,
    max_attempts: int | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> DockerRuntime:
    """Block until the Docker daemon answers a ping.

    Retries forever with a fixed delay unless max_attempts is given, in which
    case the last error is raised.
    """
    delay = settings.connect_retry_s if retry_s is None else retry_s
    attempt = 0
    while True:
        attempt += 1
        try:
            runtime = DockerRuntime(factory())
            runtime.ping()
            log_event("INFO", "Connected to Docker")
            return runtime
        except _CALL_ERRORS as e:
            log_event("WARN", f"Docker not reachable (attempt {attempt}): {_describe(e)}")
            if max_attempts is not None and attempt >= max_attempts:
                raise
        sleep(max(0.0, delay))
