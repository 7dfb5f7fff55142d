"""Kapacitor task client.

Client keeps alert rules and their Kapacitor tasks in step: it renders
rules to TICKscript on the way in, reverse-parses scripts on the way out,
and drives the task status transitions Kapacitor requires.

Every public operation opens its own connection through the injected
connector and closes it when done. Nothing is retried; retry policy
belongs to the caller or the transport.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from functools import partial
from typing import TYPE_CHECKING

from kapalert.engine.constants import HTTP_ENDPOINT
from kapalert.engine.generator import TickscriptGenerator
from kapalert.engine.reverse import TickscriptReverser
from kapalert.exceptions import (
    AlertNotFoundError,
    KapacitorConnectionError,
    KapalertError,
    PartialUpdateError,
    RemoteRequestError,
    ScriptSyntaxError,
    UnsupportedScriptError,
)
from kapalert.ids import UUIDGenerator
from kapalert.models.enums import TaskStatus
from kapalert.models.rule import AlertRule, to_task_type
from kapalert.models.task import (
    DBRP,
    CreateTaskOptions,
    Link,
    ListTasksOptions,
    RemoteTask,
    Task,
    TaskOptions,
    UpdateTaskOptions,
)
from kapalert.transport import new_kapa_client

if TYPE_CHECKING:
    from collections.abc import Iterator

    from kapalert.models.config import KapacitorConfig
    from kapalert.protocols import Connector, IDGenerator, KapaClient

logger = logging.getLogger(__name__)

# Prefix of every task id this library creates. Never stripped on read.
PREFIX = "chronograf-v1-"


def _dbrps(rule: AlertRule) -> tuple[DBRP, ...]:
    query = rule.query
    if query is None:
        return ()
    return (DBRP(database=query.database, retention_policy=query.retention_policy),)


class Client:
    """Manages alert rules as Kapacitor tasks.

    Usage::

        client = Client("http://localhost:9092")
        task = client.create(rule)
        client.disable(task.href)
        rules = client.all()

    Args:
        url: Kapacitor base URL.
        username: Basic auth user; empty disables authentication.
        password: Basic auth password.
        connector: Factory opening a KapaClient for (url, username, password).
        id_generator: Source of new task ids. Must be thread safe.
        page_size: Tasks requested per page when listing.
    """

    def __init__(
        self,
        url: str,
        username: str = "",
        password: str = "",
        *,
        connector: Connector = new_kapa_client,
        id_generator: IDGenerator | None = None,
        page_size: int = 100,
        generator: TickscriptGenerator | None = None,
        reverser: TickscriptReverser | None = None,
    ) -> None:
        if page_size < 1:
            raise ValueError(f"page_size must be positive, got {page_size}")
        self.url = url
        self.username = username
        self.password = password
        self.page_size = page_size
        self._connector = connector
        self._ids = id_generator or UUIDGenerator()
        self._generator = generator or TickscriptGenerator()
        self._reverser = reverser or TickscriptReverser()

    @classmethod
    def from_config(cls, config: KapacitorConfig, **kwargs: object) -> Client:
        """Create a client from a KapacitorConfig.

        The default connector is bound to the configured request timeout.
        """
        kwargs.setdefault("connector", partial(new_kapa_client, timeout=config.timeout))
        return cls(
            config.url,
            config.username,
            config.password,
            page_size=config.page_size,
            **kwargs,  # type: ignore[arg-type]
        )

    # ------------------------------------------------------------------
    # Links
    # ------------------------------------------------------------------

    def href(self, id: str) -> str:
        """Link to the task with the given id."""
        return f"/kapacitor/v1/tasks/{id}"

    def href_output(self, id: str) -> str:
        """Link to the httpOut node of the task with the given id."""
        return f"/kapacitor/v1/tasks/{id}/{HTTP_ENDPOINT}"

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def create(self, rule: AlertRule, *, timeout: float | None = None) -> Task:
        """Render ``rule`` and create it as an enabled task.

        The task id is ``PREFIX`` plus a fresh generated id; ``rule.id`` is
        ignored. Nothing is kept locally if Kapacitor rejects the task.

        Raises:
            KapacitorConnectionError: If no connection could be opened.
            GenerationError: If the rule cannot be rendered.
            RemoteRequestError: If Kapacitor rejects the task.
        """
        with self._connection() as kapa:
            script = self._generator.generate(rule)
            kapa_id = PREFIX + self._ids.generate()
            remote = kapa.create_task(
                CreateTaskOptions(
                    id=kapa_id,
                    type=to_task_type(rule.query),
                    dbrps=_dbrps(rule),
                    tick_script=script,
                    status=TaskStatus.ENABLED,
                ),
                timeout=timeout,
            )
        logger.info("Created task %s (%s)", kapa_id, rule.name)
        return Task(
            id=kapa_id,
            href=remote.link.href or self.href(kapa_id),
            href_output=self.href_output(kapa_id),
            status=remote.status or TaskStatus.ENABLED,
            tick_script=script,
            rule=self.reverse(kapa_id, script),
        )

    def delete(self, href: str, *, timeout: float | None = None) -> None:
        """Delete the task at ``href``."""
        with self._connection() as kapa:
            kapa.delete_task(Link(href=href), timeout=timeout)
        logger.info("Deleted task %s", href)

    def update(self, href: str, rule: AlertRule, *, timeout: float | None = None) -> Task:
        """Replace the script of the task at ``href`` with ``rule``'s rendering.

        This takes two requests. The first writes the new script, type and
        dbrps with the status forced to disabled, since Kapacitor refuses
        some changes (the task type among them) on enabled tasks. The second
        re-enables the task. If the second fails the first is not rolled
        back: ``PartialUpdateError`` is raised, carrying the updated task,
        which stays disabled until the caller enables it.

        Raises:
            KapacitorConnectionError: If no connection could be opened.
            GenerationError: If the rule cannot be rendered.
            RemoteRequestError: If Kapacitor rejects the update.
            PartialUpdateError: If the update applied but re-enabling failed.
        """
        with self._connection() as kapa:
            script = self._generator.generate(rule)
            remote = kapa.update_task(
                Link(href=href),
                UpdateTaskOptions(
                    type=to_task_type(rule.query),
                    dbrps=_dbrps(rule),
                    tick_script=script,
                    status=TaskStatus.DISABLED,
                ),
                timeout=timeout,
            )
        task = Task(
            id=remote.id,
            href=remote.link.href or href,
            href_output=self.href_output(remote.id),
            status=TaskStatus.DISABLED,
            tick_script=script,
            rule=self.reverse(remote.id, script),
        )
        logger.debug("Updated task %s while disabled", task.id)

        try:
            enabled = self.enable(href, timeout=timeout)
        except KapalertError as exc:
            logger.warning("Task %s updated but not re-enabled: %s", task.id, exc)
            raise PartialUpdateError(task) from exc
        logger.info("Updated task %s", task.id)
        return task.model_copy(update={"status": enabled.status})

    def enable(self, href: str, *, timeout: float | None = None) -> Task:
        """Enable the task at ``href``. Only status and href are authoritative."""
        return self._update_status(href, TaskStatus.ENABLED, timeout)

    def disable(self, href: str, *, timeout: float | None = None) -> Task:
        """Disable the task at ``href``. Only status and href are authoritative."""
        return self._update_status(href, TaskStatus.DISABLED, timeout)

    def _update_status(
        self, href: str, status: TaskStatus, timeout: float | None
    ) -> Task:
        with self._connection() as kapa:
            remote = kapa.update_task(
                Link(href=href), UpdateTaskOptions(status=status), timeout=timeout
            )
        logger.info("Task %s is now %s", href, status.value)
        return Task(
            id=remote.id,
            href=remote.link.href or href,
            href_output=self.href_output(remote.id),
            status=remote.status or status,
            tick_script=remote.tick_script,
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def status(self, href: str, *, timeout: float | None = None) -> str:
        """Status text of the task at ``href``."""
        with self._connection() as kapa:
            remote = kapa.task(Link(href=href), None, timeout=timeout)
        return remote.status.value if remote.status else ""

    def all_status(self, *, timeout: float | None = None) -> dict[str, str]:
        """Status text of every task, keyed by task id.

        Only the status field is requested and no script is parsed.
        """
        with self._connection() as kapa:
            tasks = self._list(kapa, ("status",), timeout)
        return {t.id: t.status.value if t.status else "" for t in tasks}

    def get(self, id: str, *, timeout: float | None = None) -> AlertRule:
        """Fetch and reverse-parse the alert with task id ``id``.

        Any fetch Kapacitor rejects (a ``RemoteRequestError`` of any status)
        is reported as the alert not existing. Connection failures and
        cancellations are not masked and propagate unchanged.

        Raises:
            KapacitorConnectionError: If Kapacitor cannot be reached or
                refuses the credentials.
            OperationCancelledError: If the fetch exceeded ``timeout``.
            AlertNotFoundError: If Kapacitor rejected the fetch.
        """
        with self._connection() as kapa:
            try:
                remote = kapa.task(Link(href=self.href(id)), TaskOptions(), timeout=timeout)
            except RemoteRequestError as exc:
                raise AlertNotFoundError(id) from exc
        return self.reverse(remote.id or id, remote.tick_script)

    def all(self, *, timeout: float | None = None) -> dict[str, AlertRule]:
        """Every task as an AlertRule, keyed by task id.

        A task whose script cannot be fully reverse-parsed is degraded on its
        own (see ``reverse``); it never fails the listing.
        """
        with self._connection() as kapa:
            tasks = self._list(kapa, (), timeout)
        return {t.id: self.reverse(t.id, t.tick_script) for t in tasks}

    def reverse(self, id: str, script: str) -> AlertRule:
        """Rebuild the AlertRule of task ``id`` from its script, degrading on failure.

        An unsupported script keeps whatever was extracted, with the name
        falling back to the id. An unparseable script yields a rule with
        ``name == id`` and no query.
        """
        try:
            rule = self._reverser.reverse(script)
        except UnsupportedScriptError as exc:
            logger.warning("Task %s has an unsupported script: %s", id, exc)
            rule = exc.partial
            if not rule.name:
                rule = rule.model_copy(update={"name": id})
        except ScriptSyntaxError as exc:
            logger.warning("Task %s has an unparseable script: %s", id, exc)
            return AlertRule(id=id, name=id, query=None, tick_script=script)
        return rule.model_copy(update={"id": id, "tick_script": script})

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @contextmanager
    def _connection(self) -> Iterator[KapaClient]:
        """Open a connection for one operation and close it afterwards."""
        try:
            kapa = self._connector(self.url, self.username, self.password)
        except KapacitorConnectionError:
            raise
        except Exception as exc:
            raise KapacitorConnectionError(
                f"Cannot connect to Kapacitor at {self.url}: {exc}"
            ) from exc
        try:
            yield kapa
        finally:
            close = getattr(kapa, "close", None)
            if callable(close):
                close()

    def _list(
        self, kapa: KapaClient, fields: tuple[str, ...], timeout: float | None
    ) -> list[RemoteTask]:
        tasks: list[RemoteTask] = []
        offset = 0
        while True:
            page = kapa.list_tasks(
                ListTasksOptions(fields=fields, offset=offset, limit=self.page_size),
                timeout=timeout,
            )
            tasks.extend(page)
            if len(page) < self.page_size:
                break
            offset += len(page)
        logger.debug("Listed %d tasks from %s", len(tasks), self.url)
        return tasks
