"""Tests for the httpx Kapacitor transport.

Tests cover:
- Request shapes for every task endpoint
- Response decoding into RemoteTask
- Error mapping: auth, remote errors, timeouts, transport failures
- Incomplete or unexpected task objects decoded through the Client
- The default connector's URL validation
"""

from __future__ import annotations

import json

import httpx
import pytest

from kapalert.client import Client
from kapalert.exceptions import (
    KapacitorConnectionError,
    OperationCancelledError,
    RemoteRequestError,
)
from kapalert.models.enums import TaskStatus, TaskType
from kapalert.models.task import (
    DBRP,
    CreateTaskOptions,
    Link,
    ListTasksOptions,
    TaskOptions,
    UpdateTaskOptions,
)
from kapalert.protocols import KapaClient
from kapalert.transport import HTTPKapaClient, new_kapa_client


# ---------------------------------------------------------------------------
# Fixtures and helpers
# ---------------------------------------------------------------------------

def _task_json(task_id: str = "chronograf-v1-1", **overrides) -> dict:
    """Build a realistic Kapacitor task object."""
    body = {
        "link": {"rel": "self", "href": f"/kapacitor/v1/tasks/{task_id}"},
        "id": task_id,
        "type": "stream",
        "dbrps": [{"db": "telegraf", "rp": "autogen"}],
        "script": "var x = 1",
        "status": "enabled",
        "executing": True,
        "error": "",
        "stats": {},
    }
    body.update(overrides)
    return body


def _make_client(handler, **kwargs) -> HTTPKapaClient:
    """Create an HTTPKapaClient over an httpx.MockTransport."""
    return HTTPKapaClient(
        "http://kapacitor:9092", transport=httpx.MockTransport(handler), **kwargs
    )


class Recorder:
    """Handler that records requests and replies with a fixed response."""

    def __init__(self, status_code: int = 200, json_body=None, content: bytes | None = None):
        self.requests: list[httpx.Request] = []
        self.status_code = status_code
        self.json_body = json_body
        self.content = content

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.content is not None:
            return httpx.Response(self.status_code, content=self.content)
        return httpx.Response(self.status_code, json=self.json_body)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

class TestEndpoints:
    def test_implements_protocol(self):
        assert isinstance(_make_client(Recorder()), KapaClient)

    def test_create_task(self):
        rec = Recorder(json_body=_task_json())
        kapa = _make_client(rec)
        task = kapa.create_task(CreateTaskOptions(
            id="chronograf-v1-1",
            type=TaskType.STREAM,
            dbrps=(DBRP("telegraf", "autogen"),),
            tick_script="var x = 1",
        ))

        assert rec.last.method == "POST"
        assert rec.last.url.path == "/kapacitor/v1/tasks"
        assert json.loads(rec.last.content) == {
            "id": "chronograf-v1-1",
            "type": "stream",
            "dbrps": [{"db": "telegraf", "rp": "autogen"}],
            "script": "var x = 1",
            "status": "enabled",
        }
        assert task.id == "chronograf-v1-1"
        assert task.link == Link(href="/kapacitor/v1/tasks/chronograf-v1-1")
        assert task.status == TaskStatus.ENABLED
        assert task.type == TaskType.STREAM
        assert task.dbrps == (DBRP("telegraf", "autogen"),)
        assert task.tick_script == "var x = 1"
        assert task.executing is True

    def test_get_task(self):
        rec = Recorder(json_body=_task_json(status="disabled", type="batch"))
        task = _make_client(rec).task(
            Link(href="/kapacitor/v1/tasks/chronograf-v1-1"), TaskOptions()
        )
        assert rec.last.method == "GET"
        assert rec.last.url.path == "/kapacitor/v1/tasks/chronograf-v1-1"
        assert rec.last.url.params["script-format"] == "raw"
        assert rec.last.url.params["dot-view"] == "attributes"
        assert task.status == TaskStatus.DISABLED
        assert task.type == TaskType.BATCH

    def test_list_tasks(self):
        rec = Recorder(json_body={"tasks": [
            {"id": "a", "link": {"href": "/kapacitor/v1/tasks/a"}, "status": "enabled"},
            {"id": "b", "link": {"href": "/kapacitor/v1/tasks/b"}, "status": "disabled"},
        ]})
        tasks = _make_client(rec).list_tasks(
            ListTasksOptions(fields=("status",), offset=10, limit=5)
        )
        params = rec.last.url.params
        assert params["offset"] == "10"
        assert params["limit"] == "5"
        assert params.get_list("fields") == ["status"]
        assert [(t.id, t.status) for t in tasks] == [
            ("a", TaskStatus.ENABLED), ("b", TaskStatus.DISABLED),
        ]
        assert tasks[0].tick_script == ""

    def test_list_tasks_empty(self):
        rec = Recorder(json_body={"tasks": None})
        assert _make_client(rec).list_tasks() == []
        assert "fields" not in rec.last.url.params

    def test_update_sends_only_set_fields(self):
        rec = Recorder(json_body=_task_json(status="disabled"))
        _make_client(rec).update_task(
            Link(href="/kapacitor/v1/tasks/chronograf-v1-1"),
            UpdateTaskOptions(status=TaskStatus.DISABLED),
        )
        assert rec.last.method == "PATCH"
        assert json.loads(rec.last.content) == {"status": "disabled"}

    def test_delete_no_content(self):
        rec = Recorder(status_code=204, content=b"")
        result = _make_client(rec).delete_task(Link(href="/kapacitor/v1/tasks/x"))
        assert result is None
        assert rec.last.method == "DELETE"

    def test_per_call_timeout(self):
        rec = Recorder(json_body=_task_json())
        _make_client(rec).task(Link(href="/kapacitor/v1/tasks/x"), timeout=1.5)
        assert rec.last.extensions["timeout"]["read"] == 1.5


class TestAuth:
    def test_basic_auth_when_username_set(self):
        rec = Recorder(json_body={"tasks": []})
        _make_client(rec, username="admin", password="secret").list_tasks()
        assert rec.last.headers["Authorization"] == "Basic YWRtaW46c2VjcmV0"

    def test_no_auth_without_username(self):
        rec = Recorder(json_body={"tasks": []})
        _make_client(rec).list_tasks()
        assert "Authorization" not in rec.last.headers


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class TestErrors:
    @pytest.mark.parametrize("status", [401, 403])
    def test_auth_failures_are_connection_errors(self, status):
        rec = Recorder(status_code=status, json_body={"error": "unauthorized"})
        with pytest.raises(KapacitorConnectionError, match="unauthorized"):
            _make_client(rec).list_tasks()

    def test_remote_error_message_and_status(self):
        rec = Recorder(status_code=404, json_body={"error": "no task exists"})
        with pytest.raises(RemoteRequestError) as exc_info:
            _make_client(rec).task(Link(href="/kapacitor/v1/tasks/x"))
        assert exc_info.value.status_code == 404
        assert str(exc_info.value) == "HTTP 404: no task exists"

    def test_remote_error_plain_body(self):
        rec = Recorder(status_code=500, content=b"internal error")
        with pytest.raises(RemoteRequestError, match="internal error"):
            _make_client(rec).list_tasks()

    def test_invalid_json_body(self):
        rec = Recorder(status_code=200, content=b"<html>")
        with pytest.raises(RemoteRequestError, match="Unexpected response body"):
            _make_client(rec).list_tasks()

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(OperationCancelledError, match="timed out"):
            _make_client(handler).list_tasks()

    def test_transport_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(KapacitorConnectionError, match="connection refused"):
            _make_client(handler).list_tasks()

    def test_timeout_is_not_a_connection_error(self):
        def handler(request):
            raise httpx.ConnectTimeout("slow", request=request)

        with pytest.raises(OperationCancelledError):
            _make_client(handler).list_tasks()


# ---------------------------------------------------------------------------
# Decoding through the client
# ---------------------------------------------------------------------------

class TestDecoding:
    def test_listing_tolerates_null_scripts_and_unknown_values(self):
        rec = Recorder(json_body={"tasks": [
            _task_json("chronograf-v1-a", script=None, status="paused"),
            _task_json("chronograf-v1-b", type="streaming"),
        ]})
        client = Client(
            "http://kapacitor:9092",
            connector=lambda url, username, password: _make_client(rec),
        )

        rules = client.all()
        assert sorted(rules) == ["chronograf-v1-a", "chronograf-v1-b"]
        assert rules["chronograf-v1-a"].name == "chronograf-v1-a"
        assert rules["chronograf-v1-a"].tick_script == ""
        assert client.all_status() == {"chronograf-v1-a": "", "chronograf-v1-b": "enabled"}


# ---------------------------------------------------------------------------
# Connector
# ---------------------------------------------------------------------------

class TestConnector:
    def test_valid_url(self):
        kapa = new_kapa_client("http://localhost:9092", "u", "p", timeout=5.0)
        try:
            assert isinstance(kapa, HTTPKapaClient)
        finally:
            kapa.close()

    @pytest.mark.parametrize("url", ["not a url", "ftp://kapacitor:21", "http://"])
    def test_invalid_url(self, url):
        with pytest.raises(KapacitorConnectionError, match="Invalid Kapacitor URL"):
            new_kapa_client(url)

    def test_context_manager_closes(self):
        with _make_client(Recorder()) as kapa:
            pass
        assert kapa._client.is_closed
