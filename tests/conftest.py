import itertools
import sys

import pytest

# Ensure project root is importable (so `import main` / `import cli` work reliably across environments)
import os as _os
_project_root = _os.path.dirname(_os.path.dirname(__file__))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from lsr import db  # noqa: E402
from lsr.docker_ops import CreateError, QueryError, RemoveError, RuntimeClientError, StartError  # noqa: E402
from lsr.settings import Settings  # noqa: E402


@pytest.fixture(autouse=True)
def journal(tmp_path, monkeypatch):
    """Point the event journal at a throwaway sqlite file."""
    monkeypatch.setattr(db, "settings", Settings(db_path=str(tmp_path / "events.db")))
    db.init_db()
    return db


class FakeRuntime:
    """In-memory stand-in for DockerRuntime.

    Containers keep insertion order, like `docker ps` listing order in the tests.
    """

    def __init__(self):
        self.containers = {}
        self.calls = []
        self.running_history = []
        self._ids = itertools.count(1)
        self.fail_list = False
        self.fail_inspect = False
        self.fail_create = False
        self.fail_start = False
        self.fail_stop = False
        self.fail_remove = set()
        self.fail_create_after = None

    # seeding helpers
    def add(self, state="running", status="Up 5 minutes", labels=None, service="web", version="nginx:1"):
        cid = f"c{next(self._ids)}"
        lbl = {"service": service, "managed-by": "lsr", "version": version}
        if labels is not None:
            lbl = labels
        self.containers[cid] = {"state": state, "status": status, "labels": lbl, "name": cid, "image": version}
        return cid

    def running_ids(self):
        return [cid for cid, c in self.containers.items() if c["state"] == "running"]

    def count(self, op):
        return sum(1 for c in self.calls if c[0] == op)

    def _snapshot(self):
        self.running_history.append(len(self.running_ids()))

    # Runtime Client interface
    def list(self, label_filter):
        self.calls.append(("list", label_filter))
        if self.fail_list:
            raise QueryError("list failed: daemon unavailable")
        key, _, value = label_filter.partition("=")
        return [
            {"id": cid, "state": c["state"], "status": c["status"]}
            for cid, c in self.containers.items()
            if c["labels"].get(key) == value
        ]

    def inspect(self, container_id):
        self.calls.append(("inspect", container_id))
        if self.fail_inspect or container_id not in self.containers:
            raise QueryError(f"inspect {container_id} failed")
        return {"labels": dict(self.containers[container_id]["labels"])}

    def create(self, name, image, labels, host_config=None):
        self.calls.append(("create", name))
        if self.fail_create:
            raise CreateError(f"create {name} failed: image not found")
        if self.fail_create_after is not None and self.count("create") > self.fail_create_after:
            raise CreateError(f"create {name} failed: out of disk")
        cid = f"c{next(self._ids)}"
        self.containers[cid] = {
            "state": "created",
            "status": "Created",
            "labels": dict(labels),
            "name": name,
            "image": image,
            "host_config": host_config,
        }
        return cid

    def start(self, container_id):
        self.calls.append(("start", container_id))
        if self.fail_start:
            raise StartError(f"start {container_id} failed")
        c = self.containers[container_id]
        c["state"], c["status"] = "running", "Up Less than a second"
        self._snapshot()

    def stop(self, container_id, grace_seconds):
        self.calls.append(("stop", container_id, grace_seconds))
        if self.fail_stop:
            raise RuntimeClientError(f"stop {container_id} failed: not running")
        c = self.containers.get(container_id)
        if c is not None:
            c["state"], c["status"] = "exited", "Exited (0) 1 second ago"
        self._snapshot()

    def remove(self, container_id, force=True):
        self.calls.append(("remove", container_id, force))
        if container_id in self.fail_remove:
            raise RemoveError(f"remove {container_id} failed")
        self.containers.pop(container_id, None)
        self._snapshot()


@pytest.fixture
def fake():
    return FakeRuntime()


class SyntheticClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return SyntheticClock()


@pytest.fixture
def sleeps():
    """A sleep replacement that records the requested delays."""
    recorded = []

    def _sleep(seconds):
        recorded.append(seconds)

    _sleep.calls = recorded
    return _sleep
