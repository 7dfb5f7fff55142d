"""Shared test fixtures for Kapalert.

Provides an in-memory KapaClient, a deterministic id generator and sample
alert rules for every trigger type.
"""

from __future__ import annotations

import itertools
import threading

import pytest

from kapalert.client import Client
from kapalert.exceptions import RemoteRequestError
from kapalert.models import (
    AlertHandler,
    AlertRule,
    GroupBy,
    HandlerProperty,
    QueryConfig,
    QueryField,
    TriggerCondition,
)
from kapalert.models.enums import TaskStatus
from kapalert.models.task import (
    CreateTaskOptions,
    Link,
    ListTasksOptions,
    RemoteTask,
    TaskOptions,
    UpdateTaskOptions,
)

TASKS_PATH = "/kapacitor/v1/tasks"


# ------------------------------------------------------------------
# Fakes
# ------------------------------------------------------------------

class FakeKapaClient:
    """In-memory Kapacitor task store implementing the KapaClient protocol.

    Failures are injected by setting ``fail_create``, ``fail_update`` (any
    update), ``fail_enable`` (updates that set status to enabled),
    ``fail_get`` or ``fail_list``. The timeout of every call is recorded
    in ``timeouts``.
    """

    def __init__(self) -> None:
        self.tasks: dict[str, RemoteTask] = {}
        self.calls: list[tuple[str, object]] = []
        self.timeouts: list[tuple[str, float | None]] = []
        self.closed = 0
        self.fail_create: Exception | None = None
        self.fail_update: Exception | None = None
        self.fail_enable: Exception | None = None
        self.fail_get: Exception | None = None
        self.fail_list: Exception | None = None

    def _id(self, link: Link) -> str:
        return link.href.rsplit("/", 1)[-1]

    def _missing(self, task_id: str) -> RemoteRequestError:
        return RemoteRequestError(f"no task exists with id {task_id}", status_code=404)

    def create_task(self, opts: CreateTaskOptions, *, timeout=None) -> RemoteTask:
        self.calls.append(("create", opts))
        self.timeouts.append(("create", timeout))
        if self.fail_create is not None:
            raise self.fail_create
        task = RemoteTask(
            id=opts.id,
            link=Link(href=f"{TASKS_PATH}/{opts.id}"),
            status=opts.status,
            type=opts.type,
            dbrps=opts.dbrps,
            tick_script=opts.tick_script,
        )
        self.tasks[opts.id] = task
        return task

    def task(self, link: Link, opts: TaskOptions | None = None, *, timeout=None) -> RemoteTask:
        self.calls.append(("task", link))
        self.timeouts.append(("task", timeout))
        if self.fail_get is not None:
            raise self.fail_get
        task_id = self._id(link)
        if task_id not in self.tasks:
            raise self._missing(task_id)
        return self.tasks[task_id]

    def list_tasks(self, opts: ListTasksOptions | None = None, *, timeout=None) -> list[RemoteTask]:
        opts = opts or ListTasksOptions()
        self.calls.append(("list", opts))
        self.timeouts.append(("list", timeout))
        if self.fail_list is not None:
            raise self.fail_list
        ordered = [self.tasks[k] for k in sorted(self.tasks)]
        page = ordered[opts.offset:opts.offset + opts.limit]
        if opts.fields == ("status",):
            page = [RemoteTask(id=t.id, link=t.link, status=t.status) for t in page]
        return page

    def update_task(self, link: Link, opts: UpdateTaskOptions, *, timeout=None) -> RemoteTask:
        self.calls.append(("update", opts))
        self.timeouts.append(("update", timeout))
        if self.fail_update is not None:
            raise self.fail_update
        if opts.status == TaskStatus.ENABLED and self.fail_enable is not None:
            raise self.fail_enable
        task_id = self._id(link)
        if task_id not in self.tasks:
            raise self._missing(task_id)
        old = self.tasks[task_id]
        task = RemoteTask(
            id=old.id,
            link=old.link,
            status=opts.status if opts.status is not None else old.status,
            type=opts.type if opts.type is not None else old.type,
            dbrps=opts.dbrps if opts.dbrps is not None else old.dbrps,
            tick_script=opts.tick_script if opts.tick_script is not None else old.tick_script,
        )
        self.tasks[task_id] = task
        return task

    def delete_task(self, link: Link, *, timeout=None) -> None:
        self.calls.append(("delete", link))
        self.timeouts.append(("delete", timeout))
        task_id = self._id(link)
        if task_id not in self.tasks:
            raise self._missing(task_id)
        del self.tasks[task_id]

    def close(self) -> None:
        self.closed += 1

    def put(self, task_id: str, script: str, status: TaskStatus = TaskStatus.ENABLED) -> None:
        """Store a task directly, bypassing create."""
        self.tasks[task_id] = RemoteTask(
            id=task_id,
            link=Link(href=f"{TASKS_PATH}/{task_id}"),
            status=status,
            tick_script=script,
        )

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]


class SequentialIDGenerator:
    """Thread-safe id generator yielding id-1, id-2, ..."""

    def __init__(self) -> None:
        self._counter = itertools.count(1)
        self._lock = threading.Lock()

    def generate(self) -> str:
        with self._lock:
            return f"id-{next(self._counter)}"


# ------------------------------------------------------------------
# Fixtures
# ------------------------------------------------------------------

@pytest.fixture
def kapa() -> FakeKapaClient:
    return FakeKapaClient()


@pytest.fixture
def client(kapa: FakeKapaClient) -> Client:
    """Client wired to the in-memory Kapacitor."""
    return Client(
        "http://kapacitor:9092",
        connector=lambda url, username, password: kapa,
        id_generator=SequentialIDGenerator(),
    )


# ------------------------------------------------------------------
# Shared rule builders
# ------------------------------------------------------------------

def make_query(**overrides) -> QueryConfig:
    """A cpu usage stream query; keyword overrides replace fields."""
    fields = {
        "database": "telegraf",
        "retention_policy": "autogen",
        "measurement": "cpu",
        "fields": [QueryField(name="usage_user", funcs=["mean"])],
        "tags": {"host": ["web01", "web02"], "cpu": ["cpu-total"]},
        "group_by": GroupBy(time="5m", tags=["host"]),
        "are_tags_accepted": True,
    }
    fields.update(overrides)
    return QueryConfig(**fields)


def make_threshold_rule(**overrides) -> AlertRule:
    fields = {
        "name": "High CPU",
        "query": make_query(),
        "every": "1m",
        "trigger": "threshold",
        "conditions": [
            TriggerCondition(level="crit", operator="greater than", value="90"),
            TriggerCondition(level="warn", operator="inside range", value="70", range_value="90"),
        ],
        "message": "{{.ID}} is {{.Level}}",
        "details": "cpu usage on {{index .Tags \"host\"}}",
        "handlers": [
            AlertHandler(
                name="slack",
                properties=[HandlerProperty(name="channel", args=["#alerts"])],
            ),
            AlertHandler(name="email", args=["ops@example.com"]),
        ],
    }
    fields.update(overrides)
    return AlertRule(**fields)


def make_relative_rule(**overrides) -> AlertRule:
    fields = {
        "name": "CPU jump",
        "query": make_query(),
        "every": "1m",
        "trigger": "relative",
        "change": "% change",
        "shift": "1h",
        "conditions": [
            TriggerCondition(level="crit", operator="outside range", value="-10", range_value="10.5"),
        ],
        "message": "cpu changed",
    }
    fields.update(overrides)
    return AlertRule(**fields)


def make_deadman_rule(**overrides) -> AlertRule:
    fields = {
        "name": "Host silent",
        "query": make_query(fields=[], group_by=GroupBy(tags=["host"])),
        "trigger": "deadman",
        "period": "10m",
        "conditions": [TriggerCondition(level="crit", operator="less than", value="0")],
        "message": "{{index .Tags \"host\"}} stopped reporting",
        "handlers": [AlertHandler(name="pagerDuty")],
    }
    fields.update(overrides)
    return AlertRule(**fields)


def make_batch_rule(**overrides) -> AlertRule:
    fields = {
        "name": "Disk full",
        "query": make_query(
            measurement="disk",
            fields=[QueryField(name="used_percent", funcs=["max"])],
            tags={"path": ["/"]},
            are_tags_accepted=False,
            group_by=GroupBy(time="10m", tags=["host", "path"]),
            raw_text='SELECT max("used_percent") FROM "telegraf"."autogen"."disk"\nWHERE time > now() - 10m',
        ),
        "every": "5m",
        "trigger": "threshold",
        "conditions": [
            TriggerCondition(level="crit", operator="equal to or greater", value="95.0"),
            TriggerCondition(level="info", operator="not equal to", value="0"),
        ],
        "message": "disk almost full",
        "handlers": [AlertHandler(name="log", args=["/var/log/alerts.log"])],
    }
    fields.update(overrides)
    return AlertRule(**fields)
