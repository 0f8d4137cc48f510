import pytest
import requests
from docker.errors import DockerException, NotFound

from lsr import db
from lsr.docker_ops import (
    CreateError,
    DockerRuntime,
    QueryError,
    RemoveError,
    RuntimeClientError,
    StartError,
    connect_runtime,
    validate_service_name,
)


class _Api:
    """Records docker-py low-level API calls; `fail` maps method name -> exception."""

    def __init__(self, fail=None):
        self.fail = fail or {}
        self.calls = []

    def _call(self, op, *args, **kwargs):
        self.calls.append((op, args, kwargs))
        if op in self.fail:
            raise self.fail[op]

    def containers(self, **kwargs):
        self._call("containers", **kwargs)
        return [
            {"Id": "abc", "State": "running", "Status": "Up 2 minutes"},
            {"Id": "def", "State": "exited", "Status": "Exited (1) 5 seconds ago"},
            {"Id": "ghi", "State": None},
        ]

    def inspect_container(self, container_id):
        self._call("inspect_container", container_id)
        return {"Id": container_id, "Config": {"Labels": {"service": "web", "version": "nginx:1"}}}

    def create_host_config(self, **kwargs):
        self._call("create_host_config", **kwargs)
        return {"RestartPolicy": kwargs.get("restart_policy")}

    def create_container(self, image, **kwargs):
        self._call("create_container", image, **kwargs)
        return {"Id": "new123", "Warnings": []}

    def start(self, container_id):
        self._call("start", container_id)

    def stop(self, container_id, timeout=None):
        self._call("stop", container_id, timeout=timeout)

    def remove_container(self, container_id, force=False):
        self._call("remove_container", container_id, force=force)


class _Client:
    def __init__(self, api=None, ping_error=None):
        self.api = api or _Api()
        self.ping_error = ping_error

    def ping(self):
        if self.ping_error:
            raise self.ping_error
        return True


def test_validate_service_name():
    validate_service_name("web")
    validate_service_name("api-v2")
    for bad in ["", "Web", "1web", "web_api", "a" * 64]:
        with pytest.raises(ValueError):
            validate_service_name(bad)


def test_list_maps_fields_and_filters_by_label():
    client = _Client()
    out = DockerRuntime(client).list("service=web")

    assert out == [
        {"id": "abc", "state": "running", "status": "Up 2 minutes"},
        {"id": "def", "state": "exited", "status": "Exited (1) 5 seconds ago"},
        {"id": "ghi", "state": "", "status": ""},
    ]
    name, _, kwargs = client.api.calls[0]
    assert name == "containers"
    assert kwargs == {"all": True, "filters": {"label": ["service=web"]}}


@pytest.mark.parametrize(
    "error",
    [DockerException("daemon gone"), requests.exceptions.ReadTimeout("read timed out"), requests.exceptions.ConnectionError("refused")],
)
def test_list_errors_and_timeouts_become_query_error(error):
    runtime = DockerRuntime(_Client(_Api(fail={"containers": error})))
    with pytest.raises(QueryError):
        runtime.list("service=web")


def test_inspect_returns_labels():
    runtime = DockerRuntime(_Client())
    assert runtime.inspect("abc") == {"labels": {"service": "web", "version": "nginx:1"}}


def test_inspect_not_found():
    runtime = DockerRuntime(_Client(_Api(fail={"inspect_container": NotFound("No such container: abc")})))
    with pytest.raises(QueryError, match="inspect abc failed"):
        runtime.inspect("abc")


def test_create_passes_labels_and_host_config():
    client = _Client()
    cid = DockerRuntime(client).create("web-1a2b", "nginx:1", {"service": "web"}, {"restart_policy": {"Name": "no"}})

    assert cid == "new123"
    hc, create = client.api.calls
    assert hc == ("create_host_config", (), {"restart_policy": {"Name": "no"}})
    assert create[1] == ("nginx:1",)
    assert create[2]["name"] == "web-1a2b"
    assert create[2]["labels"] == {"service": "web"}
    assert create[2]["host_config"] == {"RestartPolicy": {"Name": "no"}}


def test_call_specific_error_classes():
    api = _Api(
        fail={
            "create_container": DockerException("pull access denied"),
            "start": requests.exceptions.ReadTimeout("timed out"),
            "stop": DockerException("not running"),
            "remove_container": DockerException("in use"),
        }
    )
    runtime = DockerRuntime(_Client(api))

    with pytest.raises(CreateError):
        runtime.create("web-1", "nginx:1", {})
    with pytest.raises(StartError):
        runtime.start("abc")
    with pytest.raises(RuntimeClientError):
        runtime.stop("abc", 5)
    with pytest.raises(RemoveError):
        runtime.remove("abc", force=True)


def test_stop_and_remove_arguments():
    client = _Client()
    runtime = DockerRuntime(client)
    runtime.stop("abc", 5)
    runtime.remove("abc", force=True)
    assert client.api.calls == [
        ("stop", ("abc",), {"timeout": 5}),
        ("remove_container", ("abc",), {"force": True}),
    ]


def test_connect_runtime_retries_until_ping_succeeds(sleeps):
    attempts = []

    def factory():
        attempts.append(1)
        if len(attempts) < 3:
            return _Client(ping_error=DockerException("Error while fetching server API version"))
        return _Client()

    runtime = connect_runtime(factory=factory, retry_s=2, sleep=sleeps)

    assert isinstance(runtime, DockerRuntime)
    assert len(attempts) == 3
    assert sleeps.calls == [2, 2]
    levels = [e["level"] for e in db.latest_events(10)]
    assert levels.count("WARN") == 2
    assert levels[0] == "INFO"


def test_connect_runtime_gives_up_after_max_attempts(sleeps):
    def factory():
        raise DockerException("no socket")

    with pytest.raises(DockerException):
        connect_runtime(factory=factory, retry_s=1, max_attempts=2, sleep=sleeps)
    assert sleeps.calls == [1]
